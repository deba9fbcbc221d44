"""
Provider API
Guides, paramedics, security, travel and entertainment companies, their
balances and the payouts made to them.
"""

import logging

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from app import csrf
from auth import admin_required, get_current_api_user
from forms import validate_payload, ProviderForm, PayoutForm
from models import SERVICE_PROVIDER_MODELS
from services import ProviderService, ProviderBalanceService, PayoutService, ReportingService
from utils.responses import api_error, api_success, table_response

logger = logging.getLogger(__name__)

provider_bp = Blueprint('providers', __name__, url_prefix='/api/v1')

provider_service = ProviderService()
provider_balance_service = ProviderBalanceService()
payout_service = PayoutService()
reporting_service = ReportingService()

PROVIDER_SEARCH_FIELDS = ('name', 'identity_number', 'phone', 'email', 'address')


def _invalid_type(service_type):
    if service_type not in SERVICE_PROVIDER_MODELS:
        return api_error('invalid_service_type', 404)
    return None


def _current_user_id():
    user = get_current_api_user()
    return user.id if user else None


@provider_bp.route('/providers/balance-summary', methods=['GET'])
@jwt_required()
@admin_required
def balance_summary():
    try:
        return api_success(summary=provider_balance_service.get_all_services_balance_summary())
    except Exception as e:
        logger.error(f"Error loading provider balance summary: {str(e)}")
        return api_error('error_loading_data')


@provider_bp.route('/providers/<service_type>', methods=['GET'])
@jwt_required()
@admin_required
def list_providers(service_type):
    error = _invalid_type(service_type)
    if error:
        return error
    try:
        rows = provider_service.list_providers(service_type)
        return table_response(rows, serializer=lambda row: row, search_fields=PROVIDER_SEARCH_FIELDS,
                              default_sort='created_at', default_direction='desc', filter_fields=('status',))
    except Exception as e:
        logger.error(f"Error listing {service_type}: {str(e)}")
        return api_error('error_loading_data')


@provider_bp.route('/providers/<service_type>', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_provider(service_type):
    """Create a provider; user_email and user_password also create its login"""
    error = _invalid_type(service_type)
    if error:
        return error
    try:
        data, errors = validate_payload(ProviderForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, provider = provider_service.create_provider(service_type, data)
        if not success:
            return api_error(error)
        return api_success('created_successfully', 201, item=provider.to_dict())
    except Exception as e:
        logger.error(f"Error creating {service_type} provider: {str(e)}")
        return api_error('error_saving')


@provider_bp.route('/providers/<service_type>/<int:provider_id>', methods=['GET'])
@jwt_required()
@admin_required
def get_provider(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    provider = provider_service.get_provider(service_type, provider_id)
    if not provider:
        return api_error('not_found')
    balance = provider_balance_service.calculate_service_provider_balance(service_type, provider_id)
    item = provider.to_dict()
    item['profile_picture_url'] = provider_service.file_service.get_public_url(provider.profile_picture_path)
    item['files'] = provider_service.file_service.list_folder(
        provider_service.file_service.record_folder(service_type, provider_id))
    return api_success(item=item,
                       balance=balance.to_dict() if balance else None,
                       ratings=reporting_service.get_provider_rating_statistics(service_type, provider_id))


@provider_bp.route('/providers/<service_type>/<int:provider_id>', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_provider(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    try:
        data, errors = validate_payload(ProviderForm, partial=True)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, provider = provider_service.update_provider(service_type, provider_id, data)
        if not success:
            return api_error(error)
        return api_success('updated_successfully', item=provider.to_dict())
    except Exception as e:
        logger.error(f"Error updating {service_type} provider {provider_id}: {str(e)}")
        return api_error('error_saving')


@provider_bp.route('/providers/<service_type>/<int:provider_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_provider(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    success, error = provider_service.delete_provider(service_type, provider_id)
    if not success:
        return api_error(error)
    return api_success('deleted_successfully')


@provider_bp.route('/providers/<service_type>/bulk-delete', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def bulk_delete_providers(service_type):
    error = _invalid_type(service_type)
    if error:
        return error
    ids = (request.get_json(silent=True) or {}).get('ids')
    if not isinstance(ids, list) or not ids or not all(isinstance(i, int) for i in ids):
        return api_error('invalid_request')

    success, error, deleted = provider_service.bulk_delete(service_type, ids)
    if not success:
        return api_error(error, deleted=deleted)
    return api_success('items_deleted_successfully', message_args={'count': deleted}, deleted=deleted)


@provider_bp.route('/providers/<service_type>/<int:provider_id>/balance', methods=['GET'])
@jwt_required()
@admin_required
def provider_balance(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    balance = provider_balance_service.calculate_service_provider_balance(service_type, provider_id)
    if balance is None:
        return api_error('not_found')
    return api_success(balance=balance.to_dict())


@provider_bp.route('/providers/<service_type>/<int:provider_id>/bookings', methods=['GET'])
@jwt_required()
@admin_required
def provider_bookings(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    rows = provider_balance_service.get_service_provider_bookings(service_type, provider_id)
    return table_response(rows, serializer=lambda row: row, search_fields=('booking_reference',),
                          default_sort='trip_date', default_direction='desc',
                          filter_fields=('booking_status', 'acceptance_status'))


@provider_bp.route('/providers/<service_type>/<int:provider_id>/payouts', methods=['GET'])
@jwt_required()
@admin_required
def provider_payouts(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    rows = provider_balance_service.get_service_provider_payouts(service_type, provider_id)
    return table_response(rows, serializer=lambda row: row, search_fields=('reference_number', 'description'),
                          default_sort='payment_date', default_direction='desc', filter_fields=('type', 'status'))


@provider_bp.route('/providers/<service_type>/<int:provider_id>/picture', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def upload_provider_picture(service_type, provider_id):
    error = _invalid_type(service_type)
    if error:
        return error
    file = request.files.get('file')
    if not file:
        return api_error('invalid_request')
    success, error, url = provider_service.upload_profile_picture(service_type, provider_id, file)
    if not success:
        if error == 'not_found':
            return api_error(error)
        return api_error('invalid_request', message=error)
    return api_success('picture_uploaded', url=url)


# Payouts

@provider_bp.route('/payouts', methods=['GET'])
@jwt_required()
@admin_required
def list_payouts():
    try:
        filters = {name: request.args.get(name) for name in ('type', 'status', 'service_type', 'service_id')}
        payouts = payout_service.list_payouts(filters)
    except ValueError:
        return api_error('invalid_request')
    return table_response(payouts, search_fields=('service_provider_name', 'reference_number', 'description'),
                          default_sort='created_at', default_direction='desc')


@provider_bp.route('/payouts', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_payout():
    try:
        data, errors = validate_payload(PayoutForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, payout = payout_service.create_payment_payout(data, created_by=_current_user_id())
        if not success:
            return api_error(error)
        return api_success('payout_created', 201, item=payout.to_dict())
    except Exception as e:
        logger.error(f"Error creating payout: {str(e)}")
        return api_error('error_saving')


@provider_bp.route('/payouts/<int:payout_id>/pay', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def pay_booking_record(payout_id):
    """Settle an amount owed for a booking with a payment of the same amount"""
    try:
        details = request.get_json(silent=True) or {}
        success, error, payment = payout_service.pay_booking_record(payout_id, details,
                                                                    created_by=_current_user_id())
        if not success:
            return api_error(error)
        return api_success('payout_created', 201, item=payment.to_dict())
    except Exception as e:
        logger.error(f"Error paying booking record {payout_id}: {str(e)}")
        return api_error('error_saving')


@provider_bp.route('/payouts/<int:payout_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_payout(payout_id):
    try:
        success, error = payout_service.delete_payout(payout_id)
        if not success:
            return api_error(error)
        return api_success('deleted_successfully')
    except Exception as e:
        logger.error(f"Error deleting payout {payout_id}: {str(e)}")
        return api_error('error_deleting')
