"""
Payout Service

Money owed to and paid to service providers. Confirming a booking writes
one pending `booking` payout per booking line (the obligation); paying a
provider writes a `payment` payout, either free-standing or settling one
booking record.
"""

from typing import Optional, Dict, Any, Tuple, List
import logging
from datetime import datetime
from models import (db, Booking, BookingService, Payout, PayoutType, PayoutStatus,
                    BOOKABLE_SERVICE_MODELS)
from timezone_utils import get_local_time_naive
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

PAYOUT_METHODS = ('cash', 'bank_transfer', 'check', 'credit_card')

# Detail columns kept only for the method they belong to
METHOD_DETAIL_FIELDS = {
    'bank_transfer': ('account_number', 'account_holder_name', 'bank_name', 'transaction_number'),
    'check': ('check_number', 'check_bank_name'),
}


def _parse_date(value):
    if not value:
        return get_local_time_naive().date()
    if isinstance(value, str):
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    return value


def _format_rate(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


class PayoutService:
    """Service class for provider payouts"""

    def get_provider_details(self, service_type: str, service_id: int) -> Optional[Dict[str, Any]]:
        """Name and linked user of a bookable service, None when it cannot be found"""
        model = BOOKABLE_SERVICE_MODELS.get(service_type)
        if model is None:
            logger.error(f"Unknown service type for payout: {service_type}")
            return None
        provider = db.session.get(model, service_id)
        if not provider:
            logger.error(f"Error fetching {service_type} details: {service_id} not found")
            return None
        return {'name': provider.name, 'user_id': provider.user_id}

    def add_booking_payout_records(self, booking: Booking, confirmed_by: Optional[int]) -> List[Payout]:
        """
        Add a pending booking payout for every booking line without one.

        Lines whose provider cannot be resolved are skipped. Rows are added
        to the session only.
        """
        if not booking.services:
            return []

        service_ids = [service.id for service in booking.services]
        existing = {
            row.booking_service_id for row in
            Payout.query.filter(Payout.type == PayoutType.BOOKING,
                                Payout.booking_service_id.in_(service_ids)).all()
        }

        records = []
        for service in booking.services:
            if service.id in existing:
                logger.info(f"Payout record already exists for booking service {service.id}, skipping")
                continue

            provider = self.get_provider_details(service.service_type, service.service_id)
            if not provider:
                logger.error(f"Could not fetch provider details for {service.service_type} {service.service_id}")
                continue

            quantity = service.quantity or 1
            days = service.days or 1
            rate = service.booked_price or 0.0
            record = Payout(
                type=PayoutType.BOOKING,
                status=PayoutStatus.PENDING,
                service_type=service.service_type,
                service_id=service.service_id,
                user_id=provider['user_id'],
                service_provider_name=provider['name'],
                amount=service.line_total,
                booking_service_id=service.id,
                description=f"Booking {booking.booking_reference} - {service.service_type} service",
                notes=f"Quantity: {quantity}, Days: {days}, Rate: ₪{_format_rate(rate)}",
                created_by=confirmed_by,
                payment_method='bank_transfer',
                payment_date=get_local_time_naive().date(),
            )
            db.session.add(record)
            records.append(record)

        if records:
            logger.info(f"Created {len(records)} booking payout records for booking {booking.booking_reference}")
        return records

    @TransactionHelper.with_transaction
    def create_booking_payout_records(self, booking_id: int,
                                      confirmed_by: Optional[int]) -> Tuple[bool, Optional[str], List[Payout]]:
        """
        Create booking payout records for a confirmed booking.

        Returns:
            tuple: (success: bool, error_message: str, records: list)
        """
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return False, "not_found", []
        try:
            records = self.add_booking_payout_records(booking, confirmed_by)
            return True, None, records
        except Exception as e:
            logger.error(f"Error creating booking payout records: {str(e)}")
            return False, "error_saving", []

    def check_booking_has_payouts(self, booking_id: int) -> bool:
        return db.session.query(Payout.id) \
            .join(BookingService, Payout.booking_service_id == BookingService.id) \
            .filter(BookingService.booking_id == booking_id, Payout.type == PayoutType.BOOKING) \
            .first() is not None

    def _apply_payment_details(self, payout: Payout, method: str, details: Dict[str, Any]) -> None:
        for fields in METHOD_DETAIL_FIELDS.values():
            for field in fields:
                setattr(payout, field, None)
        for field in METHOD_DETAIL_FIELDS.get(method, ()):
            setattr(payout, field, details.get(field) or None)

    @TransactionHelper.with_transaction
    def create_payment_payout(self, data: Dict[str, Any],
                              created_by: Optional[int]) -> Tuple[bool, Optional[str], Optional[Payout]]:
        """
        Record a payment made to a provider.

        Args:
            data: service_type, service_id, amount, payment_method, payment_date,
                  reference_number, description, notes and method details
            created_by: Acting user

        Returns:
            tuple: (success: bool, error_message: str, payout: Payout)
        """
        try:
            amount = float(data.get('amount') or 0)
        except (TypeError, ValueError):
            amount = 0.0
        if amount <= 0:
            return False, "amount_must_be_positive", None

        method = data.get('payment_method') or 'bank_transfer'
        if method not in PAYOUT_METHODS:
            return False, "invalid_request", None

        provider = self.get_provider_details(data.get('service_type'), data.get('service_id'))
        if not provider:
            return False, "not_found", None

        try:
            payout = Payout(
                type=PayoutType.PAYMENT,
                status=PayoutStatus.PAID,
                service_type=data['service_type'],
                service_id=data['service_id'],
                user_id=provider['user_id'],
                service_provider_name=provider['name'],
                amount=amount,
                payment_method=method,
                payment_date=_parse_date(data.get('payment_date')),
                reference_number=data.get('reference_number') or None,
                description=data.get('description') or None,
                notes=data.get('notes') or None,
                created_by=created_by,
            )
            self._apply_payment_details(payout, method, data)
            db.session.add(payout)
            db.session.flush()
            logger.info(f"Payment of {amount} recorded for {data['service_type']} {data['service_id']}")
            return True, None, payout
        except ValueError as e:
            logger.error(f"Invalid payout data: {str(e)}")
            return False, "invalid_request", None

    @TransactionHelper.with_transaction
    def pay_booking_record(self, booking_record_id: int, details: Dict[str, Any],
                           created_by: Optional[int]) -> Tuple[bool, Optional[str], Optional[Payout]]:
        """
        Settle a booking payout with a payment of the same amount.

        The booking record is marked paid. A booking record can be paid once.

        Returns:
            tuple: (success: bool, error_message: str, payment: Payout)
        """
        record = Payout.query.filter_by(id=booking_record_id, type=PayoutType.BOOKING).first()
        if not record:
            return False, "not_found", None

        existing = Payout.query.filter_by(booking_record_id=booking_record_id, type=PayoutType.PAYMENT).first()
        if existing:
            return False, "payment_already_exists", None

        method = details.get('payment_method') or 'bank_transfer'
        if method not in PAYOUT_METHODS:
            return False, "invalid_request", None

        payment = Payout(
            type=PayoutType.PAYMENT,
            status=PayoutStatus.PAID,
            service_type=record.service_type,
            service_id=record.service_id,
            user_id=record.user_id,
            service_provider_name=record.service_provider_name,
            amount=record.amount,
            payment_method=method,
            payment_date=_parse_date(details.get('payment_date')),
            booking_service_id=record.booking_service_id,
            booking_record_id=record.id,
            reference_number=details.get('reference_number') or None,
            description=record.description,
            notes=details.get('notes') or record.notes,
            created_by=created_by,
        )
        self._apply_payment_details(payment, method, details)
        db.session.add(payment)
        record.status = PayoutStatus.PAID
        db.session.flush()
        logger.info(f"Created payment record for booking payout {booking_record_id}")
        return True, None, payment

    def list_payouts(self, filters: Optional[Dict[str, Any]] = None) -> List[Payout]:
        """Payouts newest first, filtered by type, status, service_type and service_id"""
        filters = filters or {}
        query = Payout.query
        if filters.get('type'):
            query = query.filter(Payout.type == PayoutType(filters['type']))
        if filters.get('status'):
            query = query.filter(Payout.status == PayoutStatus(filters['status']))
        if filters.get('service_type'):
            query = query.filter(Payout.service_type == filters['service_type'])
        if filters.get('service_id'):
            query = query.filter(Payout.service_id == int(filters['service_id']))
        if filters.get('user_id'):
            query = query.filter(Payout.user_id == int(filters['user_id']))
        return query.order_by(Payout.created_at.desc(), Payout.id.desc()).all()

    @TransactionHelper.with_transaction
    def delete_payout(self, payout_id: int) -> Tuple[bool, Optional[str]]:
        """
        Delete a payout. Deleting a payment that settled a booking record
        puts that record back to pending.
        """
        payout = db.session.get(Payout, payout_id)
        if not payout:
            return False, "not_found"

        if payout.type == PayoutType.PAYMENT and payout.booking_record_id:
            record = db.session.get(Payout, payout.booking_record_id)
            if record and record.status == PayoutStatus.PAID:
                record.status = PayoutStatus.PENDING

        Payout.query.filter_by(booking_record_id=payout.id).update({'booking_record_id': None})
        db.session.delete(payout)
        logger.info(f"Payout {payout_id} deleted")
        return True, None
