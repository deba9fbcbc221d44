"""
Provider Balance Service

Balances owed to service providers and balances of schools.

Provider balance: total earned from booking services on confirmed or
completed bookings (booked_price x quantity x days) minus the payments made
to the provider. A positive balance means the company owes the provider.

School balance: receipts paid against the school's bookings minus the tax
invoices issued for them. A negative balance means the school owes money.
"""

from dataclasses import dataclass, asdict
from typing import Optional, List, Dict, Any
import logging
from models import (db, Booking, BookingService, BookingStatus, Payout, PayoutType, PayoutStatus,
                    School, Bill, SERVICE_PROVIDER_MODELS)

logger = logging.getLogger(__name__)

EARNING_BOOKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


@dataclass
class ServiceProviderBalance:
    service_type: str
    service_id: int
    user_id: Optional[int]
    provider_name: str
    email: Optional[str]
    phone: Optional[str]
    total_earned: float
    total_paid_out: float
    net_balance: float
    booking_count: int
    payout_count: int
    last_booking_date: Optional[str]
    last_payout_date: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class ProviderBalanceService:
    """Service class for provider and school balance calculations"""

    @staticmethod
    def get_provider_model(service_type: str):
        model = SERVICE_PROVIDER_MODELS.get(service_type)
        if model is None:
            raise ValueError(f"Unknown service type: {service_type}")
        return model

    @staticmethod
    def _earning_rows(service_type: str, service_id: int) -> List[BookingService]:
        return (BookingService.query
                .join(Booking, BookingService.booking_id == Booking.id)
                .filter(BookingService.service_type == service_type,
                        BookingService.service_id == service_id,
                        Booking.status.in_(EARNING_BOOKING_STATUSES))
                .all())

    @staticmethod
    def _paid_out_rows(service_type: str, service_id: int) -> List[Payout]:
        # Booking-type payouts are amounts owed, only payment-type rows count as paid out
        return (Payout.query
                .filter(Payout.service_type == service_type,
                        Payout.service_id == service_id,
                        Payout.type == PayoutType.PAYMENT,
                        Payout.status != PayoutStatus.CANCELLED)
                .all())

    @staticmethod
    def calculate_service_provider_balance(service_type: str, service_id: int) -> Optional[ServiceProviderBalance]:
        """
        Calculate the balance of one provider.

        Returns:
            ServiceProviderBalance or None if the provider does not exist or the lookup fails
        """
        try:
            model = ProviderBalanceService.get_provider_model(service_type)
            provider = db.session.get(model, service_id)
            if not provider:
                logger.error(f"Error fetching {service_type} provider {service_id}: not found")
                return None

            booking_services = ProviderBalanceService._earning_rows(service_type, service_id)
            total_earned = sum(bs.line_total for bs in booking_services)
            trip_dates = [bs.booking.trip_date for bs in booking_services if bs.booking.trip_date]
            last_booking_date = max(trip_dates) if trip_dates else None

            payouts = ProviderBalanceService._paid_out_rows(service_type, service_id)
            total_paid_out = sum(payout.amount or 0 for payout in payouts)
            payout_dates = [payout.payment_date for payout in payouts if payout.payment_date]
            last_payout_date = max(payout_dates) if payout_dates else None

            return ServiceProviderBalance(
                service_type=service_type,
                service_id=provider.id,
                user_id=provider.user_id,
                provider_name=provider.name,
                email=provider.email,
                phone=provider.phone,
                total_earned=total_earned,
                total_paid_out=total_paid_out,
                net_balance=total_earned - total_paid_out,
                booking_count=len(booking_services),
                payout_count=len(payouts),
                last_booking_date=_iso(last_booking_date),
                last_payout_date=_iso(last_payout_date),
            )
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Error calculating service provider balance: {str(e)}")
            return None

    @staticmethod
    def get_all_service_providers_with_balance(service_type: str) -> List[ServiceProviderBalance]:
        """Balances of every active provider of one type"""
        model = ProviderBalanceService.get_provider_model(service_type)
        try:
            providers = model.query.filter_by(status='active').order_by(model.name).all()
        except Exception as e:
            logger.error(f"Error fetching {service_type}: {str(e)}")
            return []

        balances = []
        for provider in providers:
            balance = ProviderBalanceService.calculate_service_provider_balance(service_type, provider.id)
            if balance:
                balances.append(balance)
        return balances

    @staticmethod
    def get_service_provider_bookings(service_type: str, service_id: int) -> List[Dict[str, Any]]:
        """Every booking line assigned to a provider, newest trip first"""
        rows = (BookingService.query
                .join(Booking, BookingService.booking_id == Booking.id)
                .filter(BookingService.service_type == service_type,
                        BookingService.service_id == service_id)
                .order_by(Booking.trip_date.desc())
                .all())
        return [{
            'id': bs.id,
            'booking_id': bs.booking_id,
            'booking_reference': bs.booking.booking_reference,
            'trip_date': _iso(bs.booking.trip_date),
            'quantity': bs.quantity or 1,
            'days': bs.days or 1,
            'booked_price': bs.booked_price or 0,
            'total_amount': bs.line_total,
            'booking_status': bs.booking.status.value,
            'acceptance_status': bs.acceptance_status.value,
        } for bs in rows]

    @staticmethod
    def get_service_provider_payouts(service_type: str, service_id: int) -> List[Dict[str, Any]]:
        payouts = (Payout.query
                   .filter(Payout.service_type == service_type, Payout.service_id == service_id)
                   .order_by(Payout.payment_date.desc(), Payout.id.desc())
                   .all())
        return [payout.to_dict() for payout in payouts]

    @staticmethod
    def get_all_services_balance_summary() -> Dict[str, Any]:
        """
        Amount owed per provider type.

        Only positive balances are summed; provider_count counts the
        providers that are owed money.
        """
        summary = {}
        total_owed = 0.0
        for service_type in SERVICE_PROVIDER_MODELS:
            balances = ProviderBalanceService.get_all_service_providers_with_balance(service_type)
            owed = sum(max(0.0, balance.net_balance) for balance in balances)
            summary[service_type] = {
                'total_owed': owed,
                'provider_count': len([balance for balance in balances if balance.net_balance > 0]),
            }
            total_owed += owed
        return {'by_type': summary, 'total_owed': total_owed}

    @staticmethod
    def _school_bill_totals(bill: Bill):
        if bill.bill_type == 'tax_invoice':
            return bill.total_amount or 0.0, 0.0
        if bill.bill_type == 'receipt_only':
            return 0.0, sum(payment.amount or 0.0 for payment in bill.payments)
        return 0.0, 0.0

    @staticmethod
    def calculate_school_balance(school_id: int) -> Optional[Dict[str, Any]]:
        """
        Receipts minus tax invoices across the bills of a school's bookings.

        Returns:
            dict with totals, counts and the bill list, or None if the school does not exist
        """
        try:
            school = db.session.get(School, school_id)
            if not school:
                logger.error(f"Error fetching school {school_id}: not found")
                return None

            bills = (Bill.query
                     .join(Booking, Bill.booking_id == Booking.id)
                     .filter(Booking.school_id == school_id)
                     .order_by(Bill.issue_date.desc(), Bill.id.desc())
                     .all())

            total_tax_invoices = 0.0
            total_receipts = 0.0
            tax_invoice_count = 0
            receipt_count = 0
            bill_rows = []

            for bill in bills:
                invoiced, received = ProviderBalanceService._school_bill_totals(bill)
                if bill.bill_type == 'tax_invoice':
                    tax_invoice_count += 1
                elif bill.bill_type == 'receipt_only':
                    receipt_count += 1
                total_tax_invoices += invoiced
                total_receipts += received
                bill_rows.append({
                    'id': bill.id,
                    'bill_number': bill.bill_number,
                    'bill_type': bill.bill_type,
                    'total_amount': bill.total_amount,
                    'status': bill.status,
                    'issue_date': _iso(bill.issue_date),
                    'booking_id': bill.booking_id,
                    'booking_reference': bill.booking.booking_reference if bill.booking else 'N/A',
                    'payments': [payment.to_dict() for payment in bill.payments],
                })

            return {
                'school_id': school.id,
                'school_name': school.name,
                'total_tax_invoices': total_tax_invoices,
                'total_receipts': total_receipts,
                'net_balance': total_receipts - total_tax_invoices,
                'tax_invoice_count': tax_invoice_count,
                'receipt_count': receipt_count,
                'bills': bill_rows,
            }
        except Exception as e:
            logger.error(f"Error calculating school balance: {str(e)}")
            return None

    @staticmethod
    def calculate_multiple_school_balances(school_ids: List[int]) -> Dict[int, float]:
        """Net balance per school in one query; schools without bills get 0"""
        balances = {school_id: 0.0 for school_id in school_ids}
        if not school_ids:
            return balances
        try:
            bills = (Bill.query
                     .join(Booking, Bill.booking_id == Booking.id)
                     .filter(Booking.school_id.in_(school_ids))
                     .all())
            for bill in bills:
                invoiced, received = ProviderBalanceService._school_bill_totals(bill)
                balances[bill.booking.school_id] += received - invoiced
        except Exception as e:
            logger.error(f"Error calculating school balances: {str(e)}")
        return balances
