"""
Booking API
Trip bookings, the provider accept/reject workflow, provider notifications
and booking confirmation.
"""

import logging

from flask import Blueprint
from flask_jwt_extended import jwt_required

from app import csrf, db
from auth import admin_required, get_current_api_user
from forms import validate_payload, BookingForm, BookingStatusForm, BookingResponseForm
from models import Booking, BookingService as BookingLine, SERVICE_PROVIDER_MODELS
from services import BookingService
from utils.responses import api_error, api_success, table_response

logger = logging.getLogger(__name__)

booking_bp = Blueprint('bookings', __name__, url_prefix='/api/v1')

booking_service = BookingService()


def _can_respond(user, line):
    """Admins answer for any line, provider users only for their own lines"""
    if user.is_admin:
        return True
    model = SERVICE_PROVIDER_MODELS.get(line.service_type)
    provider = db.session.get(model, line.service_id) if model else None
    return bool(provider and provider.user_id == user.id)


@booking_bp.route('/bookings', methods=['GET'])
@jwt_required()
def list_bookings():
    """Admins see every booking, other users their own"""
    user = get_current_api_user()
    if not user:
        return api_error('unauthorized')
    try:
        bookings = booking_service.list_bookings(None if user.is_admin else user.id)
        return table_response(bookings, search_fields=('booking_reference', 'school.name', 'destination.name',
                                                       'customer.full_name', 'notes'),
                              default_sort='trip_date', default_direction='desc',
                              filter_fields=('status', 'payment_status', 'school_id', 'destination_id'))
    except Exception as e:
        logger.error(f"Error listing bookings: {str(e)}")
        return api_error('error_loading_data')


@booking_bp.route('/bookings', methods=['POST'])
@jwt_required()
@csrf.exempt
def create_booking():
    """Create a booking for the current user; the body carries a 'services' list"""
    user = get_current_api_user()
    if not user:
        return api_error('unauthorized')
    try:
        data, errors = validate_payload(BookingForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        if not isinstance(data.get('services') or [], list):
            return api_error('invalid_request')
        success, error, booking = booking_service.create_booking(data, customer_id=user.id)
        if not success:
            return api_error(error)
        return api_success('booking_created', 201, item=booking.to_dict(include_services=True))
    except Exception as e:
        logger.error(f"Error creating booking: {str(e)}")
        return api_error('error_saving')


@booking_bp.route('/bookings/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking(booking_id):
    user = get_current_api_user()
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return api_error('booking_not_found')
    if not user or (not user.is_admin and booking.customer_id != user.id):
        return api_error('unauthorized')
    return api_success(item=booking_service.get_booking_details(booking_id))


@booking_bp.route('/bookings/<int:booking_id>/status', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_booking_status(booking_id):
    try:
        data, errors = validate_payload(BookingStatusForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, booking = booking_service.update_booking_status(
            booking_id, data['status'], data.get('payment_status'))
        if not success:
            return api_error(error)
        return api_success('updated_successfully', item=booking.to_dict())
    except Exception as e:
        logger.error(f"Error updating booking {booking_id}: {str(e)}")
        return api_error('error_saving')


@booking_bp.route('/bookings/<int:booking_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_booking(booking_id):
    try:
        success, error = booking_service.delete_booking(booking_id)
        if not success:
            return api_error(error)
        return api_success('deleted_successfully')
    except Exception as e:
        logger.error(f"Error deleting booking {booking_id}: {str(e)}")
        return api_error('error_deleting')


@booking_bp.route('/booking-services/<int:booking_service_id>/respond', methods=['POST'])
@jwt_required()
@csrf.exempt
def respond_to_booking_service(booking_service_id):
    """Accept or reject one provider line of a booking"""
    user = get_current_api_user()
    line = db.session.get(BookingLine, booking_service_id)
    if not line:
        return api_error('not_found')
    if not user or not _can_respond(user, line):
        return api_error('unauthorized')
    try:
        data, errors = validate_payload(BookingResponseForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, line = booking_service.respond_to_booking_service(
            booking_service_id, data['action'], user_id=user.id, reason=data.get('reason'))
        if not success:
            return api_error(error)
        key = 'booking_service_accepted' if data['action'] == 'accept' else 'booking_service_rejected'
        return api_success(key, item=line.to_dict())
    except Exception as e:
        logger.error(f"Error responding to booking service {booking_service_id}: {str(e)}")
        return api_error('error_saving')


@booking_bp.route('/bookings/<int:booking_id>/notify-services', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def notify_services(booking_id):
    success, error, counts = booking_service.notify_services(booking_id)
    if not success:
        return api_error(error)
    return api_success('notifications_sent', message_args=counts, **counts)


@booking_bp.route('/bookings/<int:booking_id>/confirm', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def confirm_booking(booking_id):
    """Confirm a booking: provider payouts are recorded and the tax invoice issued"""
    try:
        user = get_current_api_user()
        success, error, booking = booking_service.confirm_booking(booking_id, user_id=user.id if user else None)
        if not success:
            return api_error(error)
        return api_success('booking_confirmed', item=booking_service.get_booking_details(booking.id))
    except Exception as e:
        logger.error(f"Error confirming booking {booking_id}: {str(e)}")
        return api_error('error_saving')
