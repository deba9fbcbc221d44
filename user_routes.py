"""
User administration API
"""

import logging

from flask import Blueprint
from flask_jwt_extended import jwt_required

from app import csrf
from auth import admin_required, get_current_api_user
from forms import validate_payload, UserForm, InviteUserForm, AcceptInvitationForm
from models import User
from services import UserService
from utils.responses import api_error, api_success, table_response

logger = logging.getLogger(__name__)

user_bp = Blueprint('users', __name__, url_prefix='/api/v1/users')

user_service = UserService()

PROFILE_FIELDS = ('full_name', 'phone', 'country', 'address', 'language', 'role', 'status')


@user_bp.route('', methods=['GET'])
@jwt_required()
@admin_required
def list_users():
    return table_response(User.query.all(), search_fields=('email', 'full_name', 'phone'),
                          default_sort='created_at', default_direction='desc', filter_fields=('role', 'status'))


@user_bp.route('', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_user():
    try:
        data, errors = validate_payload(UserForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        profile = {name: data[name] for name in PROFILE_FIELDS if data.get(name)}
        success, error, user = user_service.create_user(data['email'], data['password'], profile)
        if not success:
            return api_error(error)
        return api_success('user_created', 201, user=user.to_dict())
    except Exception as e:
        logger.error(f"Error creating user: {str(e)}")
        return api_error('error_saving')


@user_bp.route('/<int:user_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_user(user_id):
    current = get_current_api_user()
    if current and current.id == user_id:
        return api_error('invalid_action')
    success, error = user_service.delete_user(user_id)
    if not success:
        return api_error(error)
    return api_success('user_deleted')


@user_bp.route('/invite', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def invite_user():
    try:
        data, errors = validate_payload(InviteUserForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        profile = {name: data[name] for name in ('full_name', 'phone', 'role') if data.get(name)}
        success, error, user = user_service.invite_user(data['email'], profile)
        if not success:
            return api_error(error)
        return api_success('invitation_sent', 201, user=user.to_dict())
    except Exception as e:
        logger.error(f"Error inviting user: {str(e)}")
        return api_error('error_saving')


@user_bp.route('/accept-invitation', methods=['POST'])
@csrf.exempt
def accept_invitation():
    """Set a password for an invited account and activate it"""
    data, errors = validate_payload(AcceptInvitationForm)
    if errors:
        return api_error('validation_failed', errors=errors)
    success, error, user = user_service.accept_invitation(data['token'], data['password'])
    if not success:
        return api_error(error)
    return api_success('invitation_accepted', user=user.to_dict())
