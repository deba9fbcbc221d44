"""
Booking Service

Bookings and the acceptance workflow of their service lines:

1. Providers are emailed about their lines (notify_services).
2. Each provider accepts or rejects its line; once every line is accepted
   the customer gets a confirmation email.
3. Confirming the booking records what is owed to each provider and
   issues the booking's tax invoice.
"""

from typing import Optional, Dict, Any, Tuple, List
import logging
import secrets
from datetime import datetime
from models import (db, Booking, BookingService as BookingLine, BookingStatus, AcceptanceStatus,
                    Destination, School, TripPlan, Rating, SERVICE_PROVIDER_MODELS, BOOKABLE_SERVICE_MODELS)
from timezone_utils import get_local_time_naive
from .transaction_helper import TransactionHelper
from .notification_service import NotificationService, BookingNotificationData
from .payout_service import PayoutService
from .bill_service import BillService
from .trip_plan_service import resolve_service_selections, destination_pricing
from utils.pricing import calculate_booking_price, validate_pricing_inputs

logger = logging.getLogger(__name__)

RESPONSE_ACTIONS = ('accept', 'reject')
PAYMENT_STATUSES = ('pending', 'partial', 'paid', 'refunded')


def _parse_date(value):
    if not value:
        return None
    if isinstance(value, str):
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    return value


class BookingService:
    """Service class for bookings and booking line responses"""

    def __init__(self):
        self.notification_service = NotificationService()
        self.payout_service = PayoutService()
        self.bill_service = BillService()

    def generate_booking_reference(self) -> str:
        """Unique reference such as BK-20250314-4821"""
        stamp = get_local_time_naive().strftime('%Y%m%d')
        while True:
            reference = f"BK-{stamp}-{secrets.randbelow(10000):04d}"
            if not Booking.query.filter_by(booking_reference=reference).first():
                return reference

    @TransactionHelper.with_transaction
    def create_booking(self, data: Dict[str, Any],
                       customer_id: Optional[int] = None) -> Tuple[bool, Optional[str], Optional[Booking]]:
        """
        Create a booking with its service lines, priced from the destination
        and the provider rates.

        Args:
            data: destination_id, school_id, trip_plan_id, trip_date, students_count,
                  crew_count, payment_method, notes, services
            customer_id: Booking user

        Returns:
            tuple: (success: bool, error_message: str, booking: Booking)
        """
        destination = db.session.get(Destination, data['destination_id']) if data.get('destination_id') else None
        if data.get('destination_id') and not destination:
            return False, 'not_found', None
        if data.get('school_id') and not db.session.get(School, data['school_id']):
            return False, 'not_found', None
        if data.get('trip_plan_id') and not db.session.get(TripPlan, data['trip_plan_id']):
            return False, 'not_found', None

        try:
            students = int(data.get('students_count') or 0)
            crew = int(data.get('crew_count') or 0)
            trip_date = _parse_date(data.get('trip_date'))
        except (TypeError, ValueError):
            return False, 'validation_failed', None

        error, selections = resolve_service_selections(data.get('services') or [])
        if error:
            return False, error, None
        valid, errors = validate_pricing_inputs(students, crew, selections)
        if not valid:
            logger.warning(f"Invalid booking pricing input: {'; '.join(errors)}")
            return False, 'validation_failed', None

        calculation = calculate_booking_price(destination_pricing(destination), students, crew, selections)
        booking = Booking(
            booking_reference=self.generate_booking_reference(),
            customer_id=customer_id,
            school_id=data.get('school_id'),
            destination_id=destination.id if destination else None,
            trip_plan_id=data.get('trip_plan_id'),
            trip_date=trip_date,
            students_count=students,
            crew_count=crew,
            total_amount=calculation.total_price,
            payment_method=data.get('payment_method'),
            notes=data.get('notes'),
            status=BookingStatus.PENDING,
        )
        for selection in selections:
            booking.services.append(BookingLine(
                service_type=selection.type,
                service_id=selection.id,
                quantity=selection.quantity,
                days=selection.days,
                booked_price=selection.unit_price,
                rate_type=selection.rate_type,
            ))
        db.session.add(booking)
        db.session.flush()
        logger.info(f"Booking {booking.booking_reference} created, total {booking.total_amount}")
        return True, None, booking

    def get_booking_details(self, booking_id: int) -> Optional[Dict[str, Any]]:
        """Booking with its lines, each line carrying its provider's name"""
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return None
        data = booking.to_dict(include_services=True)
        for line in data['services']:
            provider = self._provider_for(line['service_type'], line['service_id'])
            line['service_name'] = provider.name if provider else None
        tax_invoice = self.bill_service.check_existing_tax_invoice(booking.id)
        data['tax_invoice'] = tax_invoice.to_dict(include_payments=False) if tax_invoice else None
        return data

    def _provider_for(self, service_type: str, service_id: int):
        model = BOOKABLE_SERVICE_MODELS.get(service_type)
        return db.session.get(model, service_id) if model else None

    def list_bookings(self, customer_id: Optional[int] = None) -> List[Booking]:
        query = Booking.query
        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        return query.order_by(Booking.trip_date.desc(), Booking.id.desc()).all()

    def list_provider_bookings(self, service_type: str, service_id: int) -> List[Dict[str, Any]]:
        """Booking lines assigned to one provider, for the provider portal"""
        lines = (BookingLine.query
                 .join(Booking, BookingLine.booking_id == Booking.id)
                 .filter(BookingLine.service_type == service_type, BookingLine.service_id == service_id)
                 .order_by(Booking.trip_date.desc(), BookingLine.id.desc())
                 .all())
        rows = []
        for line in lines:
            row = line.to_dict()
            row['booking'] = line.booking.to_dict()
            rows.append(row)
        return rows

    def respond_to_booking_service(self, booking_service_id: int, action: str,
                                   user_id: Optional[int] = None,
                                   reason: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[BookingLine]]:
        """
        Accept or reject a booking line.

        Once the response is committed and every line of the booking is
        accepted, the customer is emailed a confirmation; a failed email is
        only logged.

        Args:
            booking_service_id: Booking line
            action: 'accept' or 'reject'
            user_id: Responding user
            reason: Rejection reason

        Returns:
            tuple: (success: bool, error_message: str, line: BookingService)
        """
        success, error, line = self.record_response(booking_service_id, action, user_id, reason)
        if success:
            booking = line.booking
            if all(service.acceptance_status == AcceptanceStatus.ACCEPTED for service in booking.services):
                sent, mail_error = self.notification_service.send_booking_confirmation_to_customer(booking)
                if not sent:
                    logger.error(f"Error sending confirmation for booking {booking.booking_reference}: {mail_error}")
        return success, error, line

    @TransactionHelper.with_transaction
    def record_response(self, booking_service_id: int, action: str, user_id: Optional[int] = None,
                        reason: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[BookingLine]]:
        if action not in RESPONSE_ACTIONS:
            return False, 'invalid_action', None

        line = db.session.get(BookingLine, booking_service_id)
        if not line:
            return False, 'not_found', None

        now = get_local_time_naive()
        line.responded_by = user_id
        if action == 'accept':
            line.acceptance_status = AcceptanceStatus.ACCEPTED
            line.accepted_at = now
        else:
            line.acceptance_status = AcceptanceStatus.REJECTED
            line.rejected_at = now
            if reason:
                line.rejection_reason = reason

        logger.info(f"Booking service {booking_service_id} {line.acceptance_status.value}")
        return True, None, line

    def notify_services(self, booking_id: int) -> Tuple[bool, Optional[str], Dict[str, int]]:
        """
        Email every provider of a booking about its line.

        Lines whose provider has no email address are skipped.

        Returns:
            tuple: (success: bool, error_message: str, counts: {'sent', 'total'})
        """
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return False, 'booking_not_found', {'sent': 0, 'total': 0}

        total = len(booking.services)
        sent = 0
        for line in booking.services:
            model = SERVICE_PROVIDER_MODELS.get(line.service_type)
            provider = db.session.get(model, line.service_id) if model else None
            if not provider or not provider.email:
                continue

            data = BookingNotificationData(
                booking_id=booking.id,
                booking_reference=booking.booking_reference,
                service_type=line.service_type,
                service_name=provider.name,
                service_email=provider.email,
                trip_date=booking.trip_date.isoformat() if booking.trip_date else '',
                destination=booking.destination.name if booking.destination else '',
                booked_price=line.booked_price or 0.0,
                quantity=line.quantity or 1,
                days=line.days or 1,
                booking_service_id=line.id,
            )
            success, error = self.notification_service.send_booking_notification_to_service(data)
            if success:
                sent += 1
            else:
                logger.error(f"Error notifying {line.service_type} {line.service_id}: {error}")

        logger.info(f"Sent {sent} of {total} notifications for booking {booking.booking_reference}")
        return True, None, {'sent': sent, 'total': total}

    @TransactionHelper.with_transaction
    def confirm_booking(self, booking_id: int,
                        user_id: Optional[int] = None) -> Tuple[bool, Optional[str], Optional[Booking]]:
        """
        Confirm a booking: record the payouts owed to its providers and
        issue its tax invoice unless one exists.

        Returns:
            tuple: (success: bool, error_message: str, booking: Booking)
        """
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return False, 'booking_not_found', None
        if booking.status == BookingStatus.CANCELLED:
            return False, 'invalid_status', None

        booking.status = BookingStatus.CONFIRMED
        self.payout_service.add_booking_payout_records(booking, user_id)

        if not self.bill_service.check_existing_tax_invoice(booking.id):
            success, error, _ = self.bill_service.generate_tax_invoice_for_booking(booking)
            if not success:
                return False, error, None

        logger.info(f"Booking {booking.booking_reference} confirmed")
        return True, None, booking

    @TransactionHelper.with_transaction
    def update_booking_status(self, booking_id: int, status: str,
                              payment_status: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[Booking]]:
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return False, 'booking_not_found', None
        try:
            booking.status = BookingStatus(status)
        except ValueError:
            return False, 'invalid_status', None
        if payment_status:
            if payment_status not in PAYMENT_STATUSES:
                return False, 'invalid_status', None
            booking.payment_status = payment_status
        return True, None, booking

    @TransactionHelper.with_transaction
    def delete_booking(self, booking_id: int) -> Tuple[bool, Optional[str]]:
        """Delete a booking with its lines and ratings; its bills are kept and detached"""
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return False, 'booking_not_found'
        for bill in booking.bills.all():
            bill.booking_id = None
        Rating.query.filter_by(booking_id=booking_id).delete()
        db.session.delete(booking)
        logger.info(f"Booking {booking.booking_reference} deleted")
        return True, None
