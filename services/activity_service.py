"""
Activity Service

Business activity feed (cars, deals, customers, providers). Each entry
stores JSON snapshots of the affected rows so the logs page can show them
after the originals change or disappear.
"""

from typing import Optional, Dict, Any, List
import logging
from datetime import timedelta
from flask import has_request_context, request
from flask_login import current_user
from models import db, ActivityLog, Customer, Car, ACTIVITY_TYPES
from timezone_utils import get_local_time_naive

logger = logging.getLogger(__name__)

# Bills are read live from their deals, so bill events are not journaled
SKIPPED_TYPES = ('bill_created', 'bill_updated', 'bill_deleted')


def _snapshot(obj: Any) -> Optional[Dict[str, Any]]:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return dict(obj)
    return obj.to_dict()


class ActivityService:
    """Service class for the business activity log"""

    @staticmethod
    def log_activity(activity_type: str,
                     deal: Any = None,
                     car: Any = None,
                     bill: Any = None,
                     provider: Any = None,
                     user_id: Optional[int] = None) -> bool:
        """
        Record an activity with enriched snapshots.

        Deals are stored with their customer and car, cars with their
        supplier. The entry is added to the session only; the caller's
        transaction commits it.

        Args:
            activity_type: One of ACTIVITY_TYPES (e.g. 'deal_created')
            deal: Deal model or dict
            car: Car model or dict
            bill: Bill model or dict
            provider: Service provider model or dict
            user_id: Acting user (defaults to current_user)

        Returns:
            bool: True if logged or intentionally skipped, False on failure
        """
        try:
            if activity_type in SKIPPED_TYPES:
                logger.debug(f"Skipping {activity_type} activity, bills are fetched from deals")
                return True

            if activity_type not in ACTIVITY_TYPES:
                logger.warning(f"Unknown activity type: {activity_type}")
                return False

            entry = ActivityLog(type=activity_type)

            if deal is not None:
                deal_data = _snapshot(deal)
                customer_id = deal_data.get('customer_id')
                if customer_id:
                    customer = db.session.get(Customer, customer_id)
                    if customer:
                        deal_data['customer'] = customer.to_dict()
                car_id = deal_data.get('car_id')
                if car_id:
                    deal_car = db.session.get(Car, car_id)
                    if deal_car:
                        deal_data['car'] = deal_car.to_dict()
                        entry.car = deal_car.to_dict()
                entry.deal = deal_data

            if car is not None:
                car_data = _snapshot(car)
                if not isinstance(car, dict) and car.provider:
                    car_data['provider_details'] = car.provider.to_dict()
                entry.car = car_data

            if bill is not None:
                entry.bill = _snapshot(bill)

            if provider is not None:
                entry.provider = _snapshot(provider)

            if user_id is None and has_request_context() and current_user and current_user.is_authenticated:
                user_id = current_user.id
            entry.user_id = user_id

            if has_request_context():
                entry.ip_address = request.remote_addr

            db.session.add(entry)
            logger.debug(f"Activity logged: {activity_type}")
            return True

        except Exception as e:
            logger.error(f"Error logging activity '{activity_type}': {str(e)}")
            return False

    @staticmethod
    def list_logs(activity_type: Optional[str] = None, limit: Optional[int] = None) -> List[ActivityLog]:
        query = ActivityLog.query
        if activity_type:
            query = query.filter(ActivityLog.type == activity_type)
        query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def cleanup_old_logs(days: int = 365) -> int:
        """
        Delete activity entries older than the given number of days.

        Returns:
            int: Number of deleted entries
        """
        cutoff = get_local_time_naive() - timedelta(days=days)
        try:
            deleted = ActivityLog.query.filter(ActivityLog.created_at < cutoff).delete()
            db.session.commit()
            logger.info(f"Cleaned up {deleted} activity log entries older than {days} days")
            return deleted
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error cleaning up activity logs: {str(e)}")
            return 0
