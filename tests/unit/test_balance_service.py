"""
Unit tests for the customer balance ledger
"""

from models import db, CustomerTransaction
from services.balance_service import BalanceService
from tests.factories import CustomerFactory


class TestUpdateCustomerBalance:

    def test_balance_change_is_journaled(self, db_session):
        customer = CustomerFactory(balance=100.0)

        assert BalanceService.update_customer_balance(customer.id, -40.0, 'deal_created', 7, 'Deal') is True
        db_session.commit()

        assert customer.balance == 60.0
        entry = CustomerTransaction.query.filter_by(customer_id=customer.id).one()
        assert entry.balance_before == 100.0
        assert entry.balance_after == 60.0
        assert entry.reference_id == '7'
        assert entry.type == 'deal_created'

    def test_missing_customer(self, db_session):
        assert BalanceService.update_customer_balance(9999, 10.0, 'receipt_created') is False
        assert CustomerTransaction.query.count() == 0


class TestDealEntries:

    def test_deal_created_debits_selling_price(self, db_session):
        customer = CustomerFactory()
        BalanceService.handle_deal_created(1, customer.id, 75000, 'Corolla 2021')
        db_session.commit()

        assert customer.balance == -75000
        entry = customer.transactions.one()
        assert entry.description == 'Deal created: Corolla 2021 (₪75000)'

    def test_deal_deleted_credits_back(self, db_session):
        customer = CustomerFactory(balance=-500.0)
        BalanceService.handle_deal_deleted(1, customer.id, 500, 'Van')
        db_session.commit()
        assert customer.balance == 0

    def test_exchange_credit_skips_zero_value(self, db_session):
        customer = CustomerFactory()
        assert BalanceService.handle_exchange_car_credit(1, customer.id, 0, customer.name) is True
        assert customer.transactions.count() == 0

    def test_exchange_credit(self, db_session):
        customer = CustomerFactory()
        BalanceService.handle_exchange_car_credit(1, customer.id, 20000.5, customer.name)
        db_session.commit()
        assert customer.balance == 20000.5
        assert '₪20000.50' in customer.transactions.one().description


class TestPaymentAmounts:

    def test_legacy_columns_are_summed(self):
        bill = {'visa_amount': 100, 'cash_amount': 50.5, 'bill_amount': None, 'bill_direction': 'positive'}
        assert BalanceService.calculate_total_payment_amount(bill) == 150.5

    def test_payment_rows_override_legacy_columns(self):
        bill = {'visa_amount': 999, 'bill_direction': 'positive'}
        payments = [{'payment_type': 'cash', 'amount': 200}, {'payment_type': 'visa', 'amount': '300'}]
        assert BalanceService.calculate_total_payment_amount(bill, payments) == 500

    def test_negative_direction(self):
        bill = {'cash_amount': 80, 'bill_direction': 'negative'}
        assert BalanceService.calculate_total_payment_amount(bill) == -80

    def test_payment_description(self):
        payments = [{'payment_type': 'visa', 'amount': 500}, {'payment_type': 'cash', 'amount': 0},
                    {'payment_type': 'check', 'amount': 120.25}]
        assert BalanceService.get_payment_description({}, payments) == 'visa: ₪500, check: ₪120.25'
        assert BalanceService.get_payment_description({'transfer_amount': 40}) == 'Transfer: ₪40'
        assert BalanceService.get_payment_description({}) == 'Payment'


class TestReceipts:

    def test_receipt_towards_deal(self, db_session):
        customer = CustomerFactory(balance=-1000.0)
        payments = [{'payment_type': 'cash', 'amount': 400}]

        BalanceService.handle_receipt_created(3, customer.id, {'bill_direction': 'positive'}, customer.name,
                                              deal_selling_price=1000, payments=payments)
        db_session.commit()

        assert customer.balance == -600
        assert customer.transactions.one().description.endswith('(towards deal)')

    def test_receipt_with_excess(self, db_session):
        customer = CustomerFactory()
        payments = [{'payment_type': 'visa', 'amount': 1200}]
        BalanceService.handle_receipt_created(3, customer.id, {'bill_direction': 'positive'}, customer.name,
                                              deal_selling_price=1000, payments=payments)
        db_session.commit()
        assert '(₪1000 for deal + ₪200 excess)' in customer.transactions.one().description

    def test_exchange_deal_compares_against_net_price(self, db_session):
        customer = CustomerFactory()
        deal = {'deal_type': 'exchange', 'customer_car_eval_value': 700}
        payments = [{'payment_type': 'cash', 'amount': 500}]
        BalanceService.handle_receipt_created(3, customer.id, {}, customer.name, deal_selling_price=1000,
                                              payments=payments, deal=deal)
        db_session.commit()
        assert '(₪300 for deal + ₪200 excess)' in customer.transactions.one().description

    def test_negative_bill_debits(self, db_session):
        customer = CustomerFactory()
        BalanceService.handle_receipt_created(4, customer.id, {'bill_direction': 'negative', 'cash_amount': 90},
                                              customer.name)
        db_session.commit()
        assert customer.balance == -90

    def test_zero_payment_is_a_no_op(self, db_session):
        customer = CustomerFactory()
        assert BalanceService.handle_receipt_created(5, customer.id, {}, customer.name) is True
        assert customer.transactions.count() == 0

    def test_receipt_deleted_reverses(self, db_session):
        customer = CustomerFactory()
        bill = {'bill_direction': 'positive'}
        payments = [{'payment_type': 'cash', 'amount': 250}]
        BalanceService.handle_receipt_created(6, customer.id, bill, customer.name, payments=payments)
        BalanceService.handle_receipt_deleted(6, customer.id, bill, customer.name, payments=payments)
        db_session.commit()

        assert customer.balance == 0
        assert customer.transactions.count() == 2


class TestLookups:

    def test_customer_from_deal(self):
        assert BalanceService.get_customer_id_from_deal({'customer_id': 4}) == 4
        assert BalanceService.get_customer_id_from_deal({'deal_type': 'intermediary', 'seller_id': 8}) == 8
        assert BalanceService.get_customer_id_from_deal(
            {'deal_type': 'financing_assistance_intermediary', 'buyer_id': 9}) == 9
        assert BalanceService.get_customer_id_from_deal({'deal_type': 'normal'}) is None
        assert BalanceService.get_customer_id_from_deal(None) is None

    def test_customer_by_name(self, db_session):
        customer = CustomerFactory(name='Noa Levi')
        assert BalanceService.get_customer_id_by_name('Noa Levi') == customer.id
        assert BalanceService.get_customer_id_by_name('Nobody') is None


class TestRecalculation:

    def test_balance_is_rebuilt_from_ledger(self, db_session):
        customer = CustomerFactory()
        BalanceService.update_customer_balance(customer.id, -300.0, 'deal_created')
        BalanceService.update_customer_balance(customer.id, 120.0, 'receipt_created')
        customer.balance = 5.0
        db_session.commit()

        assert BalanceService.recalculate_customer_balance(customer.id) == -180.0
        assert customer.balance == -180.0

    def test_missing_customer(self, db_session):
        assert BalanceService.recalculate_customer_balance(424242) is None
        assert BalanceService.customer_balance_summary(424242) is None

    def test_summary(self, db_session):
        customer = CustomerFactory()
        BalanceService.handle_deal_created(1, customer.id, 100, 'Bike')
        db.session.commit()

        summary = BalanceService.customer_balance_summary(customer.id)
        assert summary['balance'] == -100
        assert summary['transaction_count'] == 1
        assert summary['deal_count'] == 0
