"""
Authentication Module
JWT login for the API, the token blocklist and access helpers
"""

from functools import wraps
import logging

from flask import Blueprint, request
from flask_jwt_extended import jwt_required, create_access_token, get_jwt_identity, get_jwt
from flask_login import login_user, logout_user

from app import csrf, db
from forms import LoginForm, validate_payload
from models import User
from services import UserService
from utils.responses import api_error, api_success

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

# JWT token blacklist for logout functionality
blacklisted_tokens = set()

user_service = UserService()


def is_token_revoked(jwt_header, jwt_payload):
    """Check if JWT token is in blacklist"""
    return jwt_payload['jti'] in blacklisted_tokens


def get_current_api_user():
    """User behind the bearer token of the current request"""
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None


def admin_required(f):
    """Restrict a JWT-protected route to admins and trip planners"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_api_user()
        if not user or not user.is_admin:
            logger.warning(f"Admin access denied for user {get_jwt_identity()} on {request.path}")
            return api_error('unauthorized')
        return f(*args, **kwargs)
    return decorated_function


@auth_bp.route('/api/v1/auth/login', methods=['POST'])
@csrf.exempt
def login():
    """Exchange email and password for an access token"""
    try:
        data, errors = validate_payload(LoginForm)
        if errors:
            return api_error('validation_failed', errors=errors)

        success, error, user = user_service.authenticate(data['email'], data['password'])
        if not success:
            return api_error(error)

        access_token = create_access_token(
            identity=str(user.id),
            additional_claims={'role': user.role.value, 'user_id': user.id}
        )
        login_user(user)

        logger.info(f"LOGIN_SUCCESS: User: {user.email}")
        return api_success('login_successful',
                           access_token=access_token,
                           user=user.to_dict())

    except Exception as e:
        logger.error(f"Error in login: {str(e)}")
        return api_error('error_loading_data')


@auth_bp.route('/api/v1/auth/logout', methods=['POST'])
@jwt_required()
@csrf.exempt
def logout():
    """Logout and blacklist JWT token"""
    try:
        blacklisted_tokens.add(get_jwt()['jti'])
        logout_user()
        logger.info(f"LOGOUT: User: {get_jwt_identity()}")
        return api_success('logged_out')

    except Exception as e:
        logger.error(f"Error in logout: {str(e)}")
        return api_error('error_saving')


@auth_bp.route('/api/v1/auth/me', methods=['GET'])
@jwt_required()
def me():
    user = get_current_api_user()
    if not user:
        return api_error('not_found')
    return api_success(user=user.to_dict())
