"""
Unit tests for provider payouts and provider/school balances
"""

import pytest

from models import db, Payout, PayoutType, PayoutStatus, BookingStatus
from services.payout_service import PayoutService
from services.provider_balance_service import ProviderBalanceService
from services.bill_service import BillService
from tests.factories import (GuideFactory, ParamedicFactory, SchoolFactory, BookingFactory, BookingLineFactory,
                             AdminUserFactory)


@pytest.fixture
def payout_service(app):
    return PayoutService()


@pytest.fixture
def guide(db_session):
    return GuideFactory()


def confirmed_line(guide, **kwargs):
    booking = BookingFactory(status=BookingStatus.CONFIRMED, **kwargs)
    return BookingLineFactory(booking=booking, service_id=guide.id, booked_price=500.0, quantity=2, days=3)


class TestBookingRecords:

    def test_one_pending_record_per_line(self, payout_service, guide, db_session):
        line = confirmed_line(guide)
        admin = AdminUserFactory()

        records = payout_service.add_booking_payout_records(line.booking, admin.id)
        db_session.commit()

        assert len(records) == 1
        record = records[0]
        assert record.type == PayoutType.BOOKING
        assert record.status == PayoutStatus.PENDING
        assert record.amount == 3000
        assert record.service_provider_name == guide.name
        assert record.notes == 'Quantity: 2, Days: 3, Rate: ₪500'
        assert payout_service.check_booking_has_payouts(line.booking_id) is True

    def test_existing_records_are_not_duplicated(self, payout_service, guide, db_session):
        line = confirmed_line(guide)
        payout_service.add_booking_payout_records(line.booking, None)
        db_session.commit()

        assert payout_service.add_booking_payout_records(line.booking, None) == []

    def test_unknown_provider_is_skipped(self, payout_service, db_session):
        line = BookingLineFactory(service_id=424242)
        assert payout_service.add_booking_payout_records(line.booking, None) == []

    def test_create_for_missing_booking(self, payout_service, db_session):
        assert payout_service.create_booking_payout_records(31337, None) == (False, 'not_found', [])


class TestPaymentPayouts:

    def test_record_payment(self, payout_service, guide, db_session):
        success, error, payout = payout_service.create_payment_payout({
            'service_type': 'guides', 'service_id': guide.id, 'amount': '1200', 'payment_method': 'check',
            'check_number': '000123', 'account_number': 'ignored', 'payment_date': '2025-02-01'}, None)

        assert success is True
        assert error is None
        assert payout.type == PayoutType.PAYMENT
        assert payout.status == PayoutStatus.PAID
        assert payout.check_number == '000123'
        assert payout.account_number is None
        assert payout.payment_date.isoformat() == '2025-02-01'

    @pytest.mark.parametrize('amount', [0, -50, 'abc', None])
    def test_amount_must_be_positive(self, payout_service, guide, db_session, amount):
        result = payout_service.create_payment_payout({'service_type': 'guides', 'service_id': guide.id,
                                                       'amount': amount}, None)
        assert result == (False, 'amount_must_be_positive', None)

    def test_unknown_method(self, payout_service, guide, db_session):
        result = payout_service.create_payment_payout({'service_type': 'guides', 'service_id': guide.id,
                                                       'amount': 10, 'payment_method': 'paypal'}, None)
        assert result[1] == 'invalid_request'

    def test_unknown_provider(self, payout_service, db_session):
        result = payout_service.create_payment_payout({'service_type': 'guides', 'service_id': 5, 'amount': 10}, None)
        assert result[1] == 'not_found'


class TestPayBookingRecord:

    def test_pay_once(self, payout_service, guide, db_session):
        line = confirmed_line(guide)
        record = payout_service.add_booking_payout_records(line.booking, None)[0]
        db_session.commit()

        success, _, payment = payout_service.pay_booking_record(record.id, {'payment_method': 'cash'}, None)

        assert success is True
        assert payment.amount == record.amount
        assert payment.booking_record_id == record.id
        assert record.status == PayoutStatus.PAID
        assert payout_service.pay_booking_record(record.id, {}, None) == (False, 'payment_already_exists', None)

    def test_only_booking_records_can_be_paid(self, payout_service, guide, db_session):
        _, _, payment = payout_service.create_payment_payout(
            {'service_type': 'guides', 'service_id': guide.id, 'amount': 10}, None)
        assert payout_service.pay_booking_record(payment.id, {}, None)[1] == 'not_found'

    def test_deleting_payment_reopens_record(self, payout_service, guide, db_session):
        line = confirmed_line(guide)
        record = payout_service.add_booking_payout_records(line.booking, None)[0]
        db_session.commit()
        _, _, payment = payout_service.pay_booking_record(record.id, {}, None)

        assert payout_service.delete_payout(payment.id) == (True, None)

        assert record.status == PayoutStatus.PENDING
        assert Payout.query.count() == 1

    def test_delete_missing(self, payout_service, db_session):
        assert payout_service.delete_payout(1) == (False, 'not_found')


class TestListPayouts:

    def test_filters(self, payout_service, guide, db_session):
        medic = ParamedicFactory()
        payout_service.create_payment_payout({'service_type': 'guides', 'service_id': guide.id, 'amount': 10}, None)
        payout_service.create_payment_payout({'service_type': 'paramedics', 'service_id': medic.id,
                                              'amount': 20}, None)

        assert len(payout_service.list_payouts()) == 2
        rows = payout_service.list_payouts({'service_type': 'paramedics', 'type': 'payment', 'status': 'paid'})
        assert [row.amount for row in rows] == [20]


class TestProviderBalance:

    def test_earned_minus_paid(self, payout_service, guide, db_session):
        confirmed_line(guide)
        BookingLineFactory(service_id=guide.id, booked_price=999.0)  # pending booking, not earned
        payout_service.create_payment_payout({'service_type': 'guides', 'service_id': guide.id, 'amount': 1000},
                                             None)

        balance = ProviderBalanceService.calculate_service_provider_balance('guides', guide.id)

        assert balance.total_earned == 3000
        assert balance.total_paid_out == 1000
        assert balance.net_balance == 2000
        assert balance.booking_count == 1
        assert balance.payout_count == 1

    def test_booking_records_do_not_count_as_paid(self, payout_service, guide, db_session):
        line = confirmed_line(guide)
        payout_service.add_booking_payout_records(line.booking, None)
        db_session.commit()

        balance = ProviderBalanceService.calculate_service_provider_balance('guides', guide.id)
        assert balance.total_paid_out == 0

    def test_cancelled_payments_are_ignored(self, payout_service, guide, db_session):
        _, _, payout = payout_service.create_payment_payout(
            {'service_type': 'guides', 'service_id': guide.id, 'amount': 300}, None)
        payout.status = PayoutStatus.CANCELLED
        db_session.commit()

        assert ProviderBalanceService.calculate_service_provider_balance('guides', guide.id).total_paid_out == 0

    def test_missing_provider(self, db_session):
        assert ProviderBalanceService.calculate_service_provider_balance('guides', 999) is None

    def test_summary_counts_providers_owed(self, guide, db_session):
        confirmed_line(guide)
        GuideFactory()

        summary = ProviderBalanceService.get_all_services_balance_summary()

        assert summary['by_type']['guides'] == {'total_owed': 3000, 'provider_count': 1}
        assert summary['by_type']['paramedics']['total_owed'] == 0
        assert summary['total_owed'] == 3000


class TestSchoolBalance:

    def test_receipts_minus_invoices(self, db_session):
        school = SchoolFactory()
        booking = BookingFactory(school=school, total_amount=1000.0)
        bills = BillService()
        bills.generate_tax_invoice_for_booking(booking)
        db.session.commit()
        bills.create_bill({'bill_type': 'receipt_only', 'booking_id': booking.id},
                          [{'payment_type': 'cash', 'amount': 500}])

        balance = ProviderBalanceService.calculate_school_balance(school.id)

        assert balance['total_tax_invoices'] == 1180
        assert balance['total_receipts'] == 500
        assert balance['net_balance'] == -680
        assert balance['tax_invoice_count'] == 1
        assert balance['receipt_count'] == 1
        assert len(balance['bills']) == 2

        other = SchoolFactory()
        assert ProviderBalanceService.calculate_multiple_school_balances([school.id, other.id]) == {
            school.id: -680, other.id: 0.0}

    def test_missing_school(self, db_session):
        assert ProviderBalanceService.calculate_school_balance(77) is None
