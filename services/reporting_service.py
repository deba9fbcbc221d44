"""
Reporting Service

Dashboard statistics for admins and revenue figures for the provider
portal. Provider figures cover every provider row linked to the user.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
from sqlalchemy import func
from models import (db, Booking, BookingService, BookingStatus, Bill, BillPayment, Payout, PayoutType,
                    PayoutStatus, Customer, School, Deal, Rating, ActivityLog, SERVICE_PROVIDER_MODELS)
from timezone_utils import get_local_time_naive

logger = logging.getLogger(__name__)

PAID_BOOKING_STATUSES = ('paid', 'fully_paid')


def _month_key(value) -> Optional[str]:
    return value.strftime('%Y-%m') if value else None


def _shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _growth(current: float, previous: float) -> float:
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


class ReportingService:
    """Service class for reporting and analytics operations"""

    def get_user_services(self, user_id: int) -> List[Tuple[str, int]]:
        """(service_type, service_id) of every provider row owned by a user"""
        services = []
        for service_type, model in SERVICE_PROVIDER_MODELS.items():
            for (service_id,) in db.session.query(model.id).filter(model.user_id == user_id).all():
                services.append((service_type, service_id))
        return services

    def _booking_lines(self, services: List[Tuple[str, int]]) -> List[BookingService]:
        if not services:
            return []
        conditions = [db.and_(BookingService.service_type == service_type, BookingService.service_id == service_id)
                      for service_type, service_id in services]
        return (BookingService.query
                .join(Booking, BookingService.booking_id == Booking.id)
                .filter(db.or_(*conditions))
                .all())

    def calculate_service_revenue(self, user_id: int) -> Dict[str, Any]:
        """
        Revenue statistics of a provider user.

        Revenue is the sum of booking line totals; a line counts as paid when
        its booking's payment status is paid. Growth figures compare the
        current calendar month with the previous one.

        Returns:
            dict: totals, growth percentages, monthly revenue and per-type breakdown
        """
        lines = self._booking_lines(self.get_user_services(user_id))

        total_revenue = 0.0
        total_paid = 0.0
        total_pending = 0.0
        breakdown: Dict[str, Dict[str, float]] = {}
        monthly: Dict[str, Dict[str, float]] = {}

        for line in lines:
            amount = line.line_total
            paid = line.booking.payment_status in PAID_BOOKING_STATUSES
            total_revenue += amount
            if paid:
                total_paid += amount
            else:
                total_pending += amount

            entry = breakdown.setdefault(line.service_type, {'revenue': 0.0, 'count': 0})
            entry['revenue'] += amount
            entry['count'] += 1

            month = monthly.setdefault(_month_key(line.created_at),
                                       {'revenue': 0.0, 'paid': 0.0, 'pending': 0.0, 'count': 0})
            month['revenue'] += amount
            month['paid' if paid else 'pending'] += amount
            month['count'] += 1

        today = get_local_time_naive()
        current_key = f"{today.year:04d}-{today.month:02d}"
        previous_year, previous_month = _shift_month(today.year, today.month, -1)
        previous_key = f"{previous_year:04d}-{previous_month:02d}"
        empty = {'revenue': 0.0, 'paid': 0.0, 'pending': 0.0, 'count': 0}
        current = monthly.get(current_key, empty)
        previous = monthly.get(previous_key, empty)

        def average(month):
            return month['revenue'] / month['count'] if month['count'] else 0.0

        return {
            'total_revenue': total_revenue,
            'total_paid': total_paid,
            'total_pending': total_pending,
            'total_bills': len(lines),
            'revenue_growth': _growth(current['revenue'], previous['revenue']),
            'payments_growth': _growth(current['paid'], previous['paid']),
            'pending_growth': _growth(current['pending'], previous['pending']),
            'average_transaction_growth': _growth(average(current), average(previous)),
            'monthly_revenue': [{'month': key, 'revenue': value['revenue']}
                                for key, value in sorted(monthly.items()) if key],
            'service_breakdown': [{
                'service_type': service_type,
                'revenue': entry['revenue'],
                'count': entry['count'],
                'percentage': entry['revenue'] / total_revenue * 100 if total_revenue > 0 else 0.0,
            } for service_type, entry in breakdown.items()],
        }

    def get_service_transactions(self, user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """Payments received on bills of bookings that include the user's services, newest first"""
        booking_ids = {line.booking_id for line in self._booking_lines(self.get_user_services(user_id))}
        if not booking_ids:
            return []
        payments = (BillPayment.query
                    .join(Bill, BillPayment.bill_id == Bill.id)
                    .filter(Bill.booking_id.in_(booking_ids))
                    .order_by(BillPayment.payment_date.desc(), BillPayment.id.desc())
                    .limit(limit)
                    .all())
        return [{
            'id': payment.id,
            'amount': payment.amount,
            'payment_type': payment.payment_type,
            'payment_date': payment.payment_date.isoformat() if payment.payment_date else None,
            'bill_number': payment.bill.bill_number,
            'customer_name': payment.bill.customer_name or '',
            'status': payment.bill.status,
        } for payment in payments]

    def get_service_balance(self, user_id: int) -> Dict[str, float]:
        revenue = self.calculate_service_revenue(user_id)
        transactions = self.get_service_transactions(user_id)
        average = (sum(t['amount'] for t in transactions) / len(transactions)) if transactions else 0.0
        return {
            'total_earnings': revenue['total_revenue'],
            'total_received': revenue['total_paid'],
            'pending_payments': revenue['total_pending'],
            'outstanding_amount': revenue['total_revenue'] - revenue['total_paid'],
            'average_transaction_value': average,
        }

    def get_revenue_trend(self, user_id: int, months: int = 12) -> List[Dict[str, Any]]:
        """
        Revenue booked and payments received per month, oldest month first.

        Returns:
            list: [{'month': 'YYYY-MM', 'revenue': float, 'payments': float}, ...]
        """
        today = get_local_time_naive()
        keys = []
        for offset in range(months - 1, -1, -1):
            year, month = _shift_month(today.year, today.month, -offset)
            keys.append(f"{year:04d}-{month:02d}")
        trend = {key: {'month': key, 'revenue': 0.0, 'payments': 0.0} for key in keys}

        lines = self._booking_lines(self.get_user_services(user_id))
        for line in lines:
            key = _month_key(line.created_at)
            if key in trend:
                trend[key]['revenue'] += line.line_total

        booking_ids = {line.booking_id for line in lines}
        if booking_ids:
            payments = (BillPayment.query
                        .join(Bill, BillPayment.bill_id == Bill.id)
                        .filter(Bill.booking_id.in_(booking_ids))
                        .all())
            for payment in payments:
                key = _month_key(payment.payment_date)
                if key in trend:
                    trend[key]['payments'] += payment.amount or 0.0

        return [trend[key] for key in keys]

    def get_rating_statistics(self, ratings: List[Any]) -> Dict[str, Any]:
        """Average, count and 1-5 distribution of ratings (models, dicts or plain ints)"""
        values = []
        for rating in ratings or []:
            if isinstance(rating, dict):
                value = rating.get('rating')
            else:
                value = getattr(rating, 'rating', rating)
            if isinstance(value, int) and 1 <= value <= 5:
                values.append(value)
        distribution = {star: values.count(star) for star in range(1, 6)}
        return {
            'average': round(sum(values) / len(values), 2) if values else 0.0,
            'total': len(values),
            'distribution': distribution,
        }

    def get_provider_rating_statistics(self, service_type: str, service_id: int) -> Dict[str, Any]:
        ratings = Rating.query.filter_by(service_type=service_type, service_id=service_id).all()
        return self.get_rating_statistics(ratings)

    def get_dashboard_statistics(self) -> Dict[str, Any]:
        """
        Get dashboard statistics for the admin overview.

        Returns:
            dict: Dashboard statistics
        """
        try:
            today = get_local_time_naive().date()

            bookings_by_status = {status.value: 0 for status in BookingStatus}
            for status, count in db.session.query(Booking.status, func.count(Booking.id)).group_by(Booking.status):
                bookings_by_status[status.value] = count

            booked_revenue = db.session.query(func.coalesce(func.sum(Booking.total_amount), 0.0)) \
                .filter(Booking.status.in_((BookingStatus.CONFIRMED, BookingStatus.COMPLETED))).scalar()
            received = db.session.query(func.coalesce(func.sum(BillPayment.amount), 0.0)) \
                .join(Bill, BillPayment.bill_id == Bill.id) \
                .filter(Bill.booking_id.isnot(None)).scalar()
            owed_to_providers = db.session.query(func.coalesce(func.sum(Payout.amount), 0.0)) \
                .filter(Payout.type == PayoutType.BOOKING, Payout.status == PayoutStatus.PENDING).scalar()

            upcoming_trips = Booking.query.filter(
                Booking.trip_date >= today,
                Booking.status.in_((BookingStatus.PENDING, BookingStatus.CONFIRMED))
            ).count()

            providers = {service_type: model.query.filter_by(status='active').count()
                         for service_type, model in SERVICE_PROVIDER_MODELS.items()}

            recent_activities = ActivityLog.query.order_by(ActivityLog.created_at.desc(),
                                                           ActivityLog.id.desc()).limit(10).all()

            return {
                'bookings_by_status': bookings_by_status,
                'total_bookings': sum(bookings_by_status.values()),
                'upcoming_trips': upcoming_trips,
                'booked_revenue': booked_revenue,
                'payments_received': received,
                'owed_to_providers': owed_to_providers,
                'active_providers': providers,
                'total_customers': Customer.query.count(),
                'total_schools': School.query.count(),
                'active_deals': Deal.query.filter_by(status='active').count(),
                'recent_activities': [entry.to_dict() for entry in recent_activities],
                'generated_at': get_local_time_naive().isoformat(),
            }

        except Exception as e:
            logger.error(f"Error generating dashboard statistics: {str(e)}")
            return {
                'bookings_by_status': {},
                'total_bookings': 0,
                'upcoming_trips': 0,
                'booked_revenue': 0.0,
                'payments_received': 0.0,
                'owed_to_providers': 0.0,
                'active_providers': {},
                'total_customers': 0,
                'total_schools': 0,
                'active_deals': 0,
                'recent_activities': [],
                'error': str(e),
            }
