"""
Provider portal API
Balance, revenue and bookings of the provider rows linked to the current user.
"""

import logging

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from auth import get_current_api_user
from services import ReportingService, BookingService
from utils.responses import api_error, api_success, table_response

logger = logging.getLogger(__name__)

service_bp = Blueprint('services', __name__, url_prefix='/api/v1/services')

reporting_service = ReportingService()
booking_service = BookingService()


def _user_or_error():
    user = get_current_api_user()
    if not user:
        return None, api_error('unauthorized')
    return user, None


@service_bp.route('/balance', methods=['GET'])
@jwt_required()
def balance():
    user, error = _user_or_error()
    if error:
        return error
    try:
        return api_success(balance=reporting_service.get_service_balance(user.id))
    except Exception as e:
        logger.error(f"Error loading service balance for user {user.id}: {str(e)}")
        return api_error('error_loading_data')


@service_bp.route('/revenue', methods=['GET'])
@jwt_required()
def revenue():
    user, error = _user_or_error()
    if error:
        return error
    try:
        return api_success(revenue=reporting_service.calculate_service_revenue(user.id))
    except Exception as e:
        logger.error(f"Error calculating revenue for user {user.id}: {str(e)}")
        return api_error('error_loading_data')


@service_bp.route('/revenue-trend', methods=['GET'])
@jwt_required()
def revenue_trend():
    user, error = _user_or_error()
    if error:
        return error
    months = request.args.get('months', 12, type=int)
    months = min(max(months, 1), 36)
    try:
        return api_success(trend=reporting_service.get_revenue_trend(user.id, months))
    except Exception as e:
        logger.error(f"Error loading revenue trend for user {user.id}: {str(e)}")
        return api_error('error_loading_data')


@service_bp.route('/transactions', methods=['GET'])
@jwt_required()
def transactions():
    user, error = _user_or_error()
    if error:
        return error
    limit = min(max(request.args.get('limit', 50, type=int), 1), 500)
    try:
        rows = reporting_service.get_service_transactions(user.id, limit)
        return table_response(rows, serializer=lambda row: row, search_fields=('bill_number', 'customer_name'),
                              default_sort='payment_date', default_direction='desc',
                              filter_fields=('payment_type', 'status'))
    except Exception as e:
        logger.error(f"Error loading transactions for user {user.id}: {str(e)}")
        return api_error('error_loading_data')


@service_bp.route('/my-bookings', methods=['GET'])
@jwt_required()
def my_bookings():
    """Booking lines of every provider row owned by the current user"""
    user, error = _user_or_error()
    if error:
        return error
    try:
        rows = []
        for service_type, service_id in reporting_service.get_user_services(user.id):
            rows.extend(booking_service.list_provider_bookings(service_type, service_id))
        return table_response(rows, serializer=lambda row: row,
                              search_fields=('booking.booking_reference', 'booking.destination_name'),
                              default_sort='booking.trip_date', default_direction='desc',
                              filter_fields=('acceptance_status', 'service_type'))
    except Exception as e:
        logger.error(f"Error loading bookings for user {user.id}: {str(e)}")
        return api_error('error_loading_data')
