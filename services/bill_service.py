"""
Bill Service

Bills of deals and bookings: numbering, creation with payment rows,
deletion, and the tax invoice issued automatically when a booking is
confirmed. Receipt-bearing bills of deals move the customer's balance
through BalanceService.
"""

from typing import Optional, Dict, Any, Tuple, List
import logging
from datetime import datetime
from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError
from models import db, Bill, BillPayment, Booking, Deal, Customer, PAYMENT_TYPES, BILL_STATUSES
from timezone_utils import get_local_time_naive
from .transaction_helper import TransactionHelper, is_unique_violation, unique_violation_message_key
from .balance_service import BalanceService
from .activity_service import ActivityService

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 18.0

BILL_NUMBER_PREFIXES = {
    'general': 'GEN',
    'receipt_only': 'RCP',
    'tax_invoice': 'INV',
    'tax_invoice_receipt': 'INR',
}

BILL_TYPE_ALIASES = {
    'receipt': 'receipt_only',
    'receipt_only': 'receipt_only',
    'tax_invoice': 'tax_invoice',
    'tax_invoice_receipt': 'tax_invoice_receipt',
    'general': 'general',
}

# Bills that carry money received and therefore move the customer balance
RECEIPT_BILL_TYPES = ('general', 'receipt_only', 'tax_invoice_receipt')
TAXED_BILL_TYPES = ('tax_invoice', 'tax_invoice_receipt')

PAYMENT_TYPE_ALIASES = {'credit_card': 'visa', 'transfer': 'bank_transfer'}

PAYMENT_DETAIL_FIELDS = (
    'visa_installments', 'visa_card_type', 'visa_last_four',
    'transfer_bank_name', 'transfer_branch', 'transfer_account_number', 'transfer_number',
    'check_number', 'check_bank_name', 'check_branch', 'check_account_number',
    'check_holder_name', 'check_due_date',
)

LEGACY_AMOUNT_COLUMNS = ('visa_amount', 'transfer_amount', 'check_amount',
                         'cash_amount', 'bank_amount', 'bill_amount')


def normalize_bill_type(bill_type: Optional[str]) -> str:
    """Canonical bill type; unknown values fall back to 'general'"""
    key = (bill_type or '').strip().lower()
    normalized = BILL_TYPE_ALIASES.get(key)
    if normalized is None:
        logger.warning(f"Unknown bill type '{bill_type}', treating as general")
        return 'general'
    return normalized


def _to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _parse_date(value):
    if not value:
        return None
    if isinstance(value, str):
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    return value


def _tax_rate() -> float:
    if has_app_context():
        return float(current_app.config.get('TAX_RATE', DEFAULT_TAX_RATE))
    return DEFAULT_TAX_RATE


class BillService:
    """Service class for bill management"""

    def __init__(self):
        self.balance_service = BalanceService()
        self.activity_service = ActivityService()

    def generate_bill_number(self, bill_type: str) -> str:
        """
        Next bill number for a type, e.g. INV-2025-00042.

        Numbers run per type and year.
        """
        prefix = BILL_NUMBER_PREFIXES[normalize_bill_type(bill_type)]
        year = get_local_time_naive().year
        stem = f"{prefix}-{year}-"
        numbers = db.session.query(Bill.bill_number).filter(Bill.bill_number.like(f"{stem}%")).all()
        highest = 0
        for (number,) in numbers:
            suffix = number[len(stem):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{stem}{highest + 1:05d}"

    def validate_payments(self, payments: List[Dict[str, Any]]) -> Optional[str]:
        """Error key for the first invalid payment, None when all are valid"""
        for payment in payments:
            payment_type = PAYMENT_TYPE_ALIASES.get(payment.get('payment_type'), payment.get('payment_type'))
            if payment_type not in PAYMENT_TYPES:
                return 'invalid_payment_type'
            if _to_float(payment.get('amount')) <= 0:
                return 'invalid_amount'
        return None

    def _build_payment(self, payment: Dict[str, Any]) -> BillPayment:
        payment_type = PAYMENT_TYPE_ALIASES.get(payment.get('payment_type'), payment.get('payment_type'))
        row = BillPayment(
            payment_type=payment_type,
            amount=_to_float(payment.get('amount')),
            payment_date=_parse_date(payment.get('payment_date')) or get_local_time_naive().date(),
        )
        for field in PAYMENT_DETAIL_FIELDS:
            if payment.get(field) not in (None, ''):
                value = payment[field]
                setattr(row, field, _parse_date(value) if field == 'check_due_date' else value)
        return row

    def _resolve_customer_id(self, bill: Bill, deal: Optional[Deal]) -> Optional[int]:
        if bill.customer_id:
            return bill.customer_id
        customer_id = self.balance_service.get_customer_id_from_deal(deal)
        if customer_id:
            return customer_id
        return self.balance_service.get_customer_id_by_name(bill.customer_name)

    def _apply_totals(self, bill: Bill, data: Dict[str, Any]) -> None:
        if bill.bill_type in TAXED_BILL_TYPES:
            quantity = int(data.get('quantity') or 1)
            unit_price = _to_float(data.get('unit_price'))
            subtotal = _to_float(data.get('subtotal')) or quantity * unit_price
            rate = _to_float(data.get('tax_rate')) if data.get('tax_rate') not in (None, '') else _tax_rate()
            bill.quantity = quantity
            bill.unit_price = unit_price
            bill.subtotal = subtotal
            bill.tax_rate = rate
            bill.tax_amount = round(subtotal * rate / 100, 2)
            bill.total_amount = round(subtotal + bill.tax_amount, 2)
        elif bill.bill_type == 'receipt_only':
            total = sum(payment.amount for payment in bill.payments)
            bill.subtotal = total
            bill.tax_rate = 0.0
            bill.tax_amount = 0.0
            bill.total_amount = total
        else:
            bill.total_amount = _to_float(data.get('total_amount')) or _to_float(bill.bill_amount)
            bill.subtotal = bill.total_amount

    @TransactionHelper.with_transaction
    def create_bill(self, data: Dict[str, Any], payments: Optional[List[Dict[str, Any]]] = None,
                    created_by: Optional[int] = None) -> Tuple[bool, Optional[str], Optional[Bill]]:
        """
        Create a bill with its payment rows.

        Receipt-bearing bills of a deal credit (or, for negative bills,
        debit) the customer. A booking receipt that covers the booking
        total completes the booking's tax invoice.

        Args:
            data: Bill columns (bill_type, deal_id, booking_id, customer_name, ...)
            payments: Payment rows (payment_type, amount, details)
            created_by: Acting user

        Returns:
            tuple: (success: bool, error_message: str, bill: Bill)
        """
        payments = payments or []
        error = self.validate_payments(payments)
        if error:
            return False, error, None

        bill_type = normalize_bill_type(data.get('bill_type'))
        direction = data.get('bill_direction') or 'positive'
        if direction not in ('positive', 'negative'):
            return False, 'invalid_request', None
        status = data.get('status') or 'issued'
        if status not in BILL_STATUSES:
            return False, 'invalid_status', None

        deal = db.session.get(Deal, data['deal_id']) if data.get('deal_id') else None
        if data.get('deal_id') and not deal:
            return False, 'not_found', None
        booking = db.session.get(Booking, data['booking_id']) if data.get('booking_id') else None
        if data.get('booking_id') and not booking:
            return False, 'not_found', None
        if data.get('parent_bill_id') and not db.session.get(Bill, data['parent_bill_id']):
            return False, 'not_found', None

        try:
            bill = Bill(
                bill_number=data.get('bill_number') or self.generate_bill_number(bill_type),
                bill_type=bill_type,
                bill_direction=direction,
                status=status,
                issue_date=_parse_date(data.get('issue_date')) or get_local_time_naive().date(),
                due_date=_parse_date(data.get('due_date')),
                deal_id=deal.id if deal else None,
                booking_id=booking.id if booking else None,
                customer_id=data.get('customer_id'),
                customer_name=data.get('customer_name'),
                customer_phone=data.get('customer_phone'),
                customer_email=data.get('customer_email'),
                description=data.get('description'),
                notes=data.get('notes'),
                parent_bill_id=data.get('parent_bill_id'),
                created_by=created_by,
            )
            for column in LEGACY_AMOUNT_COLUMNS:
                setattr(bill, column, _to_float(data.get(column)))
            if deal and not bill.customer_name and deal.customer:
                bill.customer_name = deal.customer.name

            for payment in payments:
                bill.payments.append(self._build_payment(payment))
            self._apply_totals(bill, data)

            db.session.add(bill)
            db.session.flush()
        except ValueError as e:
            logger.error(f"Invalid bill data: {str(e)}")
            return False, 'invalid_request', None
        except IntegrityError as e:
            db.session.rollback()
            if is_unique_violation(e):
                return False, unique_violation_message_key(e), None
            logger.error(f"Error adding bill: {str(e)}")
            return False, 'error_saving', None

        if deal and bill.bill_type in RECEIPT_BILL_TYPES:
            customer_id = self._resolve_customer_id(bill, deal)
            if customer_id:
                bill.customer_id = customer_id
                customer = db.session.get(Customer, customer_id)
                self.balance_service.handle_receipt_created(
                    bill.id, customer_id, bill, bill.customer_name or (customer.name if customer else ''),
                    deal.selling_price, bill.payments, deal)
            else:
                logger.warning(f"No customer found for bill {bill.bill_number}, balance not updated")

        if booking and bill.bill_type == 'receipt_only':
            self._settle_booking_receipt(bill, booking)

        self.activity_service.log_activity('bill_created', bill=bill)
        logger.info(f"Bill {bill.bill_number} ({bill.bill_type}) created")
        return True, None, bill

    def _settle_booking_receipt(self, bill: Bill, booking: Booking) -> None:
        paid = bill.total_amount or 0.0
        bill.status = 'complete' if paid >= (booking.total_amount or 0.0) else 'incomplete'
        tax_invoice = self.check_existing_tax_invoice(booking.id)
        if tax_invoice:
            if not bill.parent_bill_id:
                bill.parent_bill_id = tax_invoice.id
            if bill.status == 'complete':
                tax_invoice.status = 'paid'
                tax_invoice.paid_date = get_local_time_naive().date()

    @TransactionHelper.with_transaction
    def update_bill_status(self, bill_id: int, status: str) -> Tuple[bool, Optional[str]]:
        bill = db.session.get(Bill, bill_id)
        if not bill:
            return False, 'not_found'
        bill.status = status
        if status == 'paid' and not bill.paid_date:
            bill.paid_date = get_local_time_naive().date()
        return True, None

    @TransactionHelper.with_transaction
    def delete_bill(self, bill_id: int) -> Tuple[bool, Optional[str]]:
        """
        Delete a bill and its payments, reversing its balance effect.

        Returns:
            tuple: (success: bool, error_message: str)
        """
        bill = db.session.get(Bill, bill_id)
        if not bill:
            return False, 'not_found'
        self.reverse_bill(bill)
        db.session.delete(bill)
        logger.info(f"Bill {bill.bill_number} deleted")
        return True, None

    def reverse_bill(self, bill: Bill) -> None:
        """Undo the balance effect of a deal bill, leaving the session uncommitted"""
        deal = bill.deal
        if deal and bill.bill_type in RECEIPT_BILL_TYPES:
            customer_id = self._resolve_customer_id(bill, deal)
            if customer_id:
                self.balance_service.handle_receipt_deleted(
                    bill.id, customer_id, bill, bill.customer_name or '',
                    deal.selling_price, bill.payments)
        self.activity_service.log_activity('bill_deleted', bill=bill)

    def check_existing_tax_invoice(self, booking_id: int) -> Optional[Bill]:
        return Bill.query.filter_by(booking_id=booking_id, bill_type='tax_invoice') \
            .order_by(Bill.id).first()

    def generate_tax_invoice_for_booking(self, booking: Booking) -> Tuple[bool, Optional[str], Optional[Bill]]:
        """
        Issue the tax invoice of a booking.

        The booking total is the subtotal; tax is added on top. The bill is
        added to the session only, the caller commits.

        Returns:
            tuple: (success: bool, error_message: str, bill: Bill)
        """
        try:
            rate = _tax_rate()
            subtotal = booking.total_amount or 0.0
            tax_amount = round(subtotal * rate / 100, 2)
            customer = booking.customer
            bill = Bill(
                bill_number=self.generate_bill_number('tax_invoice'),
                bill_type='tax_invoice',
                booking_id=booking.id,
                customer_name=(customer.full_name or customer.email) if customer else
                (booking.school.name if booking.school else None),
                customer_email=customer.email if customer else None,
                customer_phone=customer.phone if customer else None,
                subtotal=subtotal,
                tax_rate=rate,
                tax_amount=tax_amount,
                total_amount=round(subtotal + tax_amount, 2),
                status='issued',
                issue_date=get_local_time_naive().date(),
                due_date=None,
                description=f"Tax Invoice for Booking {booking.booking_reference}",
                auto_generated=True,
            )
            db.session.add(bill)
            db.session.flush()
            logger.info(f"Tax invoice {bill.bill_number} generated for booking {booking.booking_reference}")
            return True, None, bill
        except Exception as e:
            logger.error(f"Unexpected error generating tax invoice: {str(e)}")
            return False, 'error_saving', None

    def list_bills(self, filters: Optional[Dict[str, Any]] = None) -> List[Bill]:
        filters = filters or {}
        query = Bill.query
        if filters.get('bill_type'):
            query = query.filter(Bill.bill_type == normalize_bill_type(filters['bill_type']))
        if filters.get('deal_id'):
            query = query.filter(Bill.deal_id == int(filters['deal_id']))
        if filters.get('booking_id'):
            query = query.filter(Bill.booking_id == int(filters['booking_id']))
        if filters.get('customer_id'):
            query = query.filter(Bill.customer_id == int(filters['customer_id']))
        return query.order_by(Bill.created_at.desc(), Bill.id.desc()).all()
