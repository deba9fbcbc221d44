"""
Unit tests for bill numbering, creation and deletion
"""

import pytest

from models import db, Bill, BillPayment
from services.bill_service import BillService, normalize_bill_type
from timezone_utils import get_local_time_naive
from tests.factories import CustomerFactory, DealFactory, BookingFactory


@pytest.fixture
def bill_service(app):
    return BillService()


class TestNumbering:

    def test_numbers_run_per_type(self, bill_service, db_session):
        year = get_local_time_naive().year
        assert bill_service.generate_bill_number('tax_invoice') == f"INV-{year}-00001"

        db_session.add(Bill(bill_number=f"INV-{year}-00007", bill_type='tax_invoice'))
        db_session.commit()

        assert bill_service.generate_bill_number('tax_invoice') == f"INV-{year}-00008"
        assert bill_service.generate_bill_number('receipt') == f"RCP-{year}-00001"
        assert bill_service.generate_bill_number('tax_invoice_receipt') == f"INR-{year}-00001"

    def test_unknown_type_is_general(self):
        assert normalize_bill_type('Receipt') == 'receipt_only'
        assert normalize_bill_type('proforma') == 'general'
        assert normalize_bill_type(None) == 'general'


class TestPaymentValidation:

    def test_aliases_are_accepted(self, bill_service):
        payments = [{'payment_type': 'credit_card', 'amount': 10}, {'payment_type': 'transfer', 'amount': 5}]
        assert bill_service.validate_payments(payments) is None

    def test_unknown_type(self, bill_service):
        assert bill_service.validate_payments([{'payment_type': 'bitcoin', 'amount': 10}]) == 'invalid_payment_type'

    @pytest.mark.parametrize('amount', [0, -5, None, 'abc'])
    def test_non_positive_amount(self, bill_service, amount):
        assert bill_service.validate_payments([{'payment_type': 'cash', 'amount': amount}]) == 'invalid_amount'


class TestCreateBill:

    def test_tax_invoice_totals(self, bill_service, db_session):
        success, error, bill = bill_service.create_bill(
            {'bill_type': 'tax_invoice', 'quantity': 2, 'unit_price': 500, 'customer_name': 'Galil School'})

        assert success is True
        assert error is None
        assert bill.subtotal == 1000
        assert bill.tax_rate == 18.0
        assert bill.tax_amount == 180
        assert bill.total_amount == 1180

    def test_explicit_tax_rate(self, bill_service, db_session):
        _, _, bill = bill_service.create_bill({'bill_type': 'tax_invoice', 'subtotal': 200, 'tax_rate': 0})
        assert bill.tax_amount == 0
        assert bill.total_amount == 200

    def test_deal_receipt_credits_customer(self, bill_service, db_session):
        deal = DealFactory(selling_price=1000.0)
        payments = [{'payment_type': 'cash', 'amount': 400},
                    {'payment_type': 'check', 'amount': 100, 'check_number': '1234', 'check_due_date': '2025-06-01'}]

        success, _, bill = bill_service.create_bill({'bill_type': 'receipt_only', 'deal_id': deal.id}, payments)

        assert success is True
        assert bill.total_amount == 500
        assert bill.customer_id == deal.customer_id
        assert bill.customer_name == deal.customer.name
        assert deal.customer.balance == 500
        check = BillPayment.query.filter_by(bill_id=bill.id, payment_type='check').one()
        assert check.check_number == '1234'
        assert check.check_due_date.isoformat() == '2025-06-01'

    def test_negative_general_bill_debits(self, bill_service, db_session):
        deal = DealFactory()
        bill_service.create_bill({'bill_type': 'general', 'deal_id': deal.id, 'bill_direction': 'negative',
                                  'bill_amount': 300})
        assert deal.customer.balance == -300

    def test_invalid_payment_creates_nothing(self, bill_service, db_session):
        success, error, bill = bill_service.create_bill({'bill_type': 'receipt_only'},
                                                        [{'payment_type': 'cash', 'amount': 0}])
        assert (success, error, bill) == (False, 'invalid_amount', None)
        assert Bill.query.count() == 0

    def test_invalid_direction(self, bill_service, db_session):
        success, error, _ = bill_service.create_bill({'bill_direction': 'sideways'})
        assert (success, error) == (False, 'invalid_request')

    def test_missing_deal(self, bill_service, db_session):
        success, error, _ = bill_service.create_bill({'bill_type': 'receipt_only', 'deal_id': 999})
        assert (success, error) == (False, 'not_found')

    def test_duplicate_bill_number(self, bill_service, db_session):
        data = {'bill_type': 'general', 'bill_number': 'GEN-X-1', 'customer_name': 'Galil School', 'subtotal': 100}
        assert bill_service.create_bill(data)[0] is True

        assert bill_service.create_bill(dict(data)) == (False, 'bill_number_exists', None)
        assert Bill.query.filter_by(bill_number='GEN-X-1').count() == 1

    def test_unknown_status(self, bill_service, db_session):
        assert bill_service.create_bill({'bill_type': 'general', 'status': 'lost'}) == (False, 'invalid_status', None)

    def test_missing_parent_bill(self, bill_service, db_session):
        assert bill_service.create_bill({'bill_type': 'receipt_only', 'parent_bill_id': 77})[1] == 'not_found'

    def test_full_booking_receipt_pays_tax_invoice(self, bill_service, db_session):
        booking = BookingFactory(total_amount=1000.0)
        _, _, invoice = bill_service.generate_tax_invoice_for_booking(booking)
        db_session.commit()

        success, _, receipt = bill_service.create_bill(
            {'bill_type': 'receipt_only', 'booking_id': booking.id},
            [{'payment_type': 'bank_transfer', 'amount': 1000}])

        assert success is True
        assert receipt.status == 'complete'
        assert receipt.parent_bill_id == invoice.id
        assert invoice.status == 'paid'
        assert invoice.paid_date is not None

    def test_partial_booking_receipt(self, bill_service, db_session):
        booking = BookingFactory(total_amount=1000.0)
        bill_service.generate_tax_invoice_for_booking(booking)
        db_session.commit()

        _, _, receipt = bill_service.create_bill({'bill_type': 'receipt_only', 'booking_id': booking.id},
                                                 [{'payment_type': 'cash', 'amount': 300}])

        assert receipt.status == 'incomplete'
        assert bill_service.check_existing_tax_invoice(booking.id).status == 'issued'


class TestTaxInvoice:

    def test_invoice_for_booking(self, bill_service, db_session):
        booking = BookingFactory(total_amount=2500.0)
        success, _, bill = bill_service.generate_tax_invoice_for_booking(booking)
        db_session.commit()

        assert success is True
        assert bill.bill_type == 'tax_invoice'
        assert bill.auto_generated is True
        assert bill.tax_amount == 450
        assert bill.total_amount == 2950
        assert bill.customer_email == booking.customer.email
        assert booking.booking_reference in bill.description
        assert bill_service.check_existing_tax_invoice(booking.id).id == bill.id


class TestStatusAndDelete:

    def test_paid_status_sets_paid_date(self, bill_service, db_session):
        _, _, bill = bill_service.create_bill({'bill_type': 'general', 'total_amount': 50})
        assert bill_service.update_bill_status(bill.id, 'paid') == (True, None)
        assert bill.paid_date is not None
        assert bill_service.update_bill_status(999, 'paid') == (False, 'not_found')

    def test_delete_reverses_balance(self, bill_service, db_session):
        deal = DealFactory(selling_price=1000.0)
        _, _, bill = bill_service.create_bill({'bill_type': 'receipt_only', 'deal_id': deal.id},
                                              [{'payment_type': 'visa', 'amount': 600}])
        customer = deal.customer
        assert customer.balance == 600

        assert bill_service.delete_bill(bill.id) == (True, None)
        assert customer.balance == 0
        assert Bill.query.count() == 0
        assert BillPayment.query.count() == 0

    def test_delete_missing(self, bill_service, db_session):
        assert bill_service.delete_bill(31337) == (False, 'not_found')


class TestListBills:

    def test_filters(self, bill_service, db_session):
        customer = CustomerFactory()
        bill_service.create_bill({'bill_type': 'general', 'customer_id': customer.id, 'total_amount': 10})
        bill_service.create_bill({'bill_type': 'tax_invoice', 'subtotal': 100})

        assert len(bill_service.list_bills()) == 2
        assert len(bill_service.list_bills({'customer_id': str(customer.id)})) == 1
        assert [bill.bill_type for bill in bill_service.list_bills({'bill_type': 'tax_invoice'})] == ['tax_invoice']
        assert db.session.query(Bill).count() == 2
