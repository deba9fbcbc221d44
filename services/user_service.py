"""
User Service

Login account administration: creating, inviting, authenticating and
deleting users. Account creation is two steps, the login row and then its
profile; when the profile step fails the new login is removed again.
"""

from typing import Optional, Dict, Any, Tuple
import logging
import secrets
from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from models import (db, User, UserRole, UserStatus, School, EducationProgram, Payout,
                    Subscription, SERVICE_PROVIDER_MODELS)
from timezone_utils import get_local_time_naive
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

PROFILE_FIELDS = ('full_name', 'phone', 'country', 'address', 'language')

INVITATION_SALT = 'user-invitation'

# Rows that point at a user and are detached when the user is deleted
USER_LINKED_MODELS = tuple(SERVICE_PROVIDER_MODELS.values()) + (School, EducationProgram, Payout)


def _normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def _parse_role(value) -> UserRole:
    if isinstance(value, UserRole):
        return value
    return UserRole(str(value).strip().lower())


def _parse_status(value) -> UserStatus:
    if isinstance(value, UserStatus):
        return value
    return UserStatus(str(value).strip().lower())


class UserService:
    """Service class for login account administration"""

    def __init__(self):
        self.notification_service = NotificationService()

    def validate_credentials(self, email: Optional[str], password: Optional[str]) -> Optional[str]:
        if not email or not password:
            return 'email_password_required'
        if len(password) < MIN_PASSWORD_LENGTH:
            return 'password_too_short'
        return None

    def email_exists(self, email: str) -> bool:
        return User.query.filter_by(email=_normalize_email(email)).first() is not None

    def add_user(self, email: str, password: str, role: UserRole = UserRole.CUSTOMER,
                 full_name: Optional[str] = None, phone: Optional[str] = None,
                 status: UserStatus = UserStatus.ACTIVE) -> User:
        """Add a login row to the session without committing"""
        user = User(email=_normalize_email(email), role=role, status=status,
                    full_name=full_name, phone=phone)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()
        return user

    def apply_profile(self, user: User, profile: Dict[str, Any]) -> None:
        """Copy profile fields onto a user; raises ValueError for an unknown role or status"""
        for field in PROFILE_FIELDS:
            if field in profile:
                setattr(user, field, profile[field] or None)
        if profile.get('role'):
            user.role = _parse_role(profile['role'])
        if profile.get('status'):
            user.status = _parse_status(profile['status'])

    def create_user(self, email: str, password: str,
                    profile: Optional[Dict[str, Any]] = None) -> Tuple[bool, Optional[str], Optional[User]]:
        """
        Create an active login and its profile.

        Args:
            email: Login email, unique
            password: At least six characters
            profile: full_name, phone, country, address, language, role, status

        Returns:
            tuple: (success: bool, error_message: str, user: User)
        """
        error = self.validate_credentials(email, password)
        if error:
            return False, error, None
        if self.email_exists(email):
            return False, 'email_exists', None

        try:
            user = self.add_user(email, password)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating user {email}: {str(e)}")
            return False, 'error_saving', None

        try:
            self.apply_profile(user, profile or {})
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error with profile of {email}, removing the new login: {str(e)}")
            self._remove_login(user.id)
            return False, 'error_saving', None

        logger.info(f"User {user.email} created with role {user.role.value}")
        return True, None, user

    def _remove_login(self, user_id: int) -> None:
        try:
            user = db.session.get(User, user_id)
            if user:
                db.session.delete(user)
                db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error removing login {user_id}: {str(e)}")

    def invite_user(self, email: str,
                    profile: Optional[Dict[str, Any]] = None) -> Tuple[bool, Optional[str], Optional[User]]:
        """
        Create a pending login with a random password and email an invitation.

        A failed invitation email is logged; the user is still created.
        """
        if not email:
            return False, 'email_password_required', None
        if self.email_exists(email):
            return False, 'email_exists', None

        profile = dict(profile or {})
        profile.setdefault('status', UserStatus.PENDING)
        try:
            user = self.add_user(email, secrets.token_urlsafe(12), status=UserStatus.PENDING)
            self.apply_profile(user, profile)
            user.invited_at = get_local_time_naive()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error inviting user {email}: {str(e)}")
            return False, 'error_saving', None

        sent, error = self.notification_service.send_invitation(
            user.email, self.generate_invitation_token(user), user.full_name)
        if not sent:
            logger.error(f"Error sending invitation to {user.email}: {error}")
        return True, None, user

    def _invitation_serializer(self) -> URLSafeTimedSerializer:
        return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=INVITATION_SALT)

    def generate_invitation_token(self, user: User) -> str:
        """
        Signed token for the invitation link.

        It carries a fingerprint of the current password hash, so setting a
        password spends it.
        """
        return self._invitation_serializer().dumps({'user_id': user.id, 'key': user.password_hash[-16:]})

    def resolve_invitation_token(self, token: Optional[str]) -> Tuple[Optional[User], Optional[str]]:
        if not token:
            return None, 'invalid_invitation'
        try:
            payload = self._invitation_serializer().loads(
                token, max_age=current_app.config.get('INVITATION_MAX_AGE', 7 * 24 * 3600))
        except SignatureExpired:
            return None, 'invitation_expired'
        except BadSignature:
            return None, 'invalid_invitation'

        user = db.session.get(User, payload.get('user_id'))
        if (not user or not user.invited_at or user.status != UserStatus.PENDING
                or user.password_hash[-16:] != payload.get('key')):
            return None, 'invalid_invitation'
        return user, None

    def accept_invitation(self, token: str, password: str) -> Tuple[bool, Optional[str], Optional[User]]:
        """Set the password of an invited user from their invitation token and activate the account"""
        if not password:
            return False, 'email_password_required', None
        if len(password) < MIN_PASSWORD_LENGTH:
            return False, 'password_too_short', None
        user, error = self.resolve_invitation_token(token)
        if error:
            return False, error, None
        user.set_password(password)
        user.status = UserStatus.ACTIVE
        db.session.commit()
        logger.info(f"Invitation accepted by {user.email}")
        return True, None, user

    def delete_user(self, user_id: int) -> Tuple[bool, Optional[str]]:
        """
        Delete a login. Records linked to it are detached, subscriptions go with it.

        Returns:
            tuple: (success: bool, error_message: str)
        """
        user = db.session.get(User, user_id)
        if not user:
            return False, 'not_found'
        try:
            for model in USER_LINKED_MODELS:
                model.query.filter_by(user_id=user_id).update({'user_id': None})
            Subscription.query.filter_by(user_id=user_id).delete()
            db.session.delete(user)
            db.session.commit()
            logger.info(f"User {user_id} deleted")
            return True, None
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting user {user_id}: {str(e)}")
            return False, 'error_deleting'

    def authenticate(self, email: str, password: str) -> Tuple[bool, Optional[str], Optional[User]]:
        """
        Check credentials and record the login time.

        Returns:
            tuple: (success: bool, error_message: str, user: User)
        """
        if not email or not password:
            return False, 'email_password_required', None
        user = User.query.filter_by(email=_normalize_email(email)).first()
        if not user or not user.check_password(password):
            logger.warning(f"Failed login attempt for {email}")
            return False, 'invalid_credentials', None
        if user.status != UserStatus.ACTIVE:
            return False, 'account_inactive', None
        user.last_login = get_local_time_naive()
        db.session.commit()
        return True, None, user
