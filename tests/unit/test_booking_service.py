"""
Unit tests for bookings and the booking line acceptance workflow
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from models import (Booking, BookingService as BookingLine, BookingStatus, AcceptanceStatus, Bill, Payout,
                    PayoutType, Rating)
from services.booking_service import BookingService
from tests.factories import (UserFactory, GuideFactory, ParamedicFactory, TravelCompanyFactory, DestinationFactory,
                             SchoolFactory, EducationProgramFactory, BookingFactory, BookingLineFactory)


@pytest.fixture
def booking_service(app):
    return BookingService()


@pytest.fixture
def trip(db_session):
    """A booking with a guide for three days and one bus company"""
    customer = UserFactory()
    guide = GuideFactory()
    buses = TravelCompanyFactory()
    _, _, booking = BookingService().create_booking({
        'destination_id': DestinationFactory().id,
        'school_id': SchoolFactory().id,
        'trip_date': '2025-05-20',
        'students_count': 100,
        'crew_count': 10,
        'services': [
            {'id': guide.id, 'type': 'guides', 'days': 3},
            {'id': buses.id, 'type': 'travel_companies'},
        ],
    }, customer_id=customer.id)
    return booking


class TestCreateBooking:

    def test_total_is_destination_plus_services(self, trip):
        assert trip.total_amount == 100 * 50 + 10 * 20 + 500 * 3 + 1200
        assert trip.status == BookingStatus.PENDING
        assert trip.booking_reference.startswith('BK-')
        assert [line.booked_price for line in trip.services] == [500, 1200]
        assert all(line.acceptance_status == AcceptanceStatus.PENDING for line in trip.services)

    def test_rate_type_and_explicit_price(self, booking_service, db_session):
        guide = GuideFactory()
        program = EducationProgramFactory()

        success, _, booking = booking_service.create_booking({'services': [
            {'id': guide.id, 'type': 'guides', 'rate_type': 'overnight'},
            {'id': program.id, 'type': 'education_programs', 'quantity': 2},
            {'id': guide.id, 'type': 'guides', 'unit_price': 100},
        ]})

        assert success is True
        assert [line.booked_price for line in booking.services] == [900, 300, 100]
        assert booking.services[1].rate_type == 'fixed'
        assert booking.total_amount == 900 + 600 + 100

    def test_unknown_destination(self, booking_service, db_session):
        assert booking_service.create_booking({'destination_id': 404}) == (False, 'not_found', None)

    def test_unknown_service_type(self, booking_service, db_session):
        result = booking_service.create_booking({'services': [{'id': 1, 'type': 'jugglers'}]})
        assert result == (False, 'invalid_service_type', None)

    def test_negative_students(self, booking_service, db_session):
        assert booking_service.create_booking({'students_count': -3})[1] == 'validation_failed'

    def test_bad_trip_date(self, booking_service, db_session):
        assert booking_service.create_booking({'trip_date': 'next tuesday'})[1] == 'validation_failed'
        assert Booking.query.count() == 0


class TestRespond:

    def test_reject_keeps_reason(self, booking_service, trip, mail_post):
        line = trip.services[0]
        success, _, result = booking_service.respond_to_booking_service(line.id, 'reject', None, 'Fully booked')

        assert success is True
        assert result.acceptance_status == AcceptanceStatus.REJECTED
        assert result.rejection_reason == 'Fully booked'
        assert result.rejected_at is not None
        mail_post.assert_not_called()

    def test_last_acceptance_emails_customer(self, booking_service, trip, mail_post):
        first, second = trip.services

        booking_service.respond_to_booking_service(first.id, 'accept')
        mail_post.assert_not_called()
        booking_service.respond_to_booking_service(second.id, 'accept')

        mail_post.assert_called_once()
        assert mail_post.call_args.kwargs['json']['to'] == trip.customer.email
        assert trip.booking_reference in mail_post.call_args.kwargs['json']['subject']

    def test_failed_confirmation_email_still_accepts(self, booking_service, trip, mail_post):
        mail_post.return_value.ok = False
        for line in trip.services:
            success, _, _ = booking_service.respond_to_booking_service(line.id, 'accept')
            assert success is True
        assert trip.services[1].acceptance_status == AcceptanceStatus.ACCEPTED

    def test_no_email_when_acceptance_is_not_committed(self, booking_service, trip, mail_post, db_session):
        first, second = trip.services
        booking_service.respond_to_booking_service(first.id, 'accept')

        with patch.object(Session, 'commit', side_effect=OperationalError('COMMIT', {}, Exception('gone'))), \
                patch('services.transaction_helper.time.sleep'):
            with pytest.raises(OperationalError):
                booking_service.respond_to_booking_service(second.id, 'accept')

        mail_post.assert_not_called()

    def test_invalid_action(self, booking_service, trip):
        assert booking_service.respond_to_booking_service(trip.services[0].id, 'maybe') == \
            (False, 'invalid_action', None)

    def test_missing_line(self, booking_service, db_session):
        assert booking_service.respond_to_booking_service(999, 'accept') == (False, 'not_found', None)


class TestNotifyServices:

    def test_providers_without_email_are_skipped(self, booking_service, trip, mail_post):
        success, error, counts = booking_service.notify_services(trip.id)

        assert (success, error) == (True, None)
        assert counts == {'sent': 1, 'total': 2}
        html = mail_post.call_args.kwargs['json']['html']
        assert f"/service/bookings/{trip.services[0].id}?action=accept" in html

    def test_failed_email_is_counted_out(self, booking_service, trip, mail_post):
        mail_post.return_value.ok = False
        assert booking_service.notify_services(trip.id)[2] == {'sent': 0, 'total': 2}

    def test_missing_booking(self, booking_service, db_session):
        assert booking_service.notify_services(55) == (False, 'booking_not_found', {'sent': 0, 'total': 0})


class TestConfirmBooking:

    def test_confirm_creates_payouts_and_invoice(self, booking_service, trip):
        success, _, booking = booking_service.confirm_booking(trip.id)

        assert success is True
        assert booking.status == BookingStatus.CONFIRMED
        assert Payout.query.filter_by(type=PayoutType.BOOKING).count() == 2
        invoice = Bill.query.filter_by(booking_id=trip.id, bill_type='tax_invoice').one()
        assert invoice.subtotal == trip.total_amount

    def test_confirm_twice_keeps_one_invoice(self, booking_service, trip):
        booking_service.confirm_booking(trip.id)
        booking_service.confirm_booking(trip.id)

        assert Bill.query.filter_by(booking_id=trip.id).count() == 1
        assert Payout.query.count() == 2

    def test_cancelled_booking_cannot_be_confirmed(self, booking_service, trip):
        booking_service.update_booking_status(trip.id, 'cancelled')
        assert booking_service.confirm_booking(trip.id) == (False, 'invalid_status', None)

    def test_missing_booking(self, booking_service, db_session):
        assert booking_service.confirm_booking(8) == (False, 'booking_not_found', None)


class TestStatusAndDelete:

    def test_update_status(self, booking_service, trip):
        success, _, booking = booking_service.update_booking_status(trip.id, 'completed', 'paid')
        assert success is True
        assert booking.status == BookingStatus.COMPLETED
        assert booking.payment_status == 'paid'

    @pytest.mark.parametrize('status,payment_status', [('shipped', None), ('confirmed', 'maybe')])
    def test_invalid_status(self, booking_service, trip, status, payment_status):
        assert booking_service.update_booking_status(trip.id, status, payment_status)[1] == 'invalid_status'

    def test_delete_detaches_bills(self, booking_service, trip):
        booking_service.confirm_booking(trip.id)
        booking_id = trip.id

        assert booking_service.delete_booking(booking_id) == (True, None)

        assert Booking.query.count() == 0
        assert BookingLine.query.count() == 0
        assert Bill.query.one().booking_id is None

    def test_delete_removes_ratings(self, booking_service, trip, db_session):
        db_session.add(Rating(booking_id=trip.id, service_type='guides', service_id=trip.services[0].service_id,
                              rating=5))
        db_session.commit()

        booking_service.delete_booking(trip.id)
        assert Rating.query.count() == 0


class TestQueries:

    def test_details_include_provider_names(self, booking_service, trip):
        details = booking_service.get_booking_details(trip.id)

        assert details['booking_reference'] == trip.booking_reference
        assert details['services'][0]['service_name'] is not None
        assert details['services'][0]['line_total'] == 1500
        assert details['tax_invoice'] is None

    def test_missing_details(self, booking_service, db_session):
        assert booking_service.get_booking_details(1) is None

    def test_list_by_customer(self, booking_service, trip):
        BookingFactory()
        assert len(booking_service.list_bookings()) == 2
        assert booking_service.list_bookings(trip.customer_id) == [trip]

    def test_provider_bookings(self, booking_service, db_session):
        medic = ParamedicFactory()
        BookingLineFactory(service_type='paramedics', service_id=medic.id)
        BookingLineFactory(service_type='paramedics', service_id=medic.id)

        rows = booking_service.list_provider_bookings('paramedics', medic.id)

        assert len(rows) == 2
        assert rows[0]['booking']['booking_reference'].startswith('BK-')
