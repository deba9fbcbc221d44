"""
Provider Service

CRUD for the bookable service providers (guides, paramedics, security,
travel and entertainment companies). A provider can own a login account
that is created with it and removed with it.
"""

from typing import Optional, Dict, Any, Tuple, List
import logging
from sqlalchemy.exc import IntegrityError
from models import db, User, SERVICE_PROVIDER_MODELS, SERVICE_TYPE_ROLES
from .transaction_helper import TransactionHelper, is_unique_violation, unique_violation_message_key
from .provider_balance_service import ProviderBalanceService
from .activity_service import ActivityService
from .file_service import FileService
from .user_service import UserService

logger = logging.getLogger(__name__)

PROVIDER_MODELS = SERVICE_PROVIDER_MODELS

COMMON_FIELDS = (
    'name', 'identity_number', 'phone', 'email', 'address',
    'hourly_rate', 'daily_rate', 'regional_rate', 'overnight_rate', 'price', 'pricing_data',
    'status', 'notes',
)
EXTRA_FIELDS = {
    'security_companies': ('license_number', 'license_types'),
    'travel_companies': ('vehicle_count', 'vehicle_availability', 'services_offered'),
    'external_entertainment_companies': ('description', 'sub_services'),
}
RATE_FIELDS = ('hourly_rate', 'daily_rate', 'regional_rate', 'overnight_rate', 'price')
PROVIDER_STATUSES = ('active', 'inactive')

# Activity types journaled per provider type, others use the generic provider_* types
ACTIVITY_PREFIXES = {'guides': 'guide', 'paramedics': 'paramedic'}


def _activity_type(service_type: str, action: str) -> str:
    return f"{ACTIVITY_PREFIXES.get(service_type, 'provider')}_{action}"


class ProviderService:
    """Service class for service provider management"""

    def __init__(self):
        self.balance_service = ProviderBalanceService()
        self.activity_service = ActivityService()
        self.file_service = FileService()
        self.user_service = UserService()

    def get_model(self, service_type: str):
        model = PROVIDER_MODELS.get(service_type)
        if model is None:
            raise ValueError(f"Unknown service type: {service_type}")
        return model

    def get_provider(self, service_type: str, provider_id: int):
        return db.session.get(self.get_model(service_type), provider_id)

    def list_providers(self, service_type: str, with_balance: bool = True) -> List[Dict[str, Any]]:
        """Provider rows of a type, each with its balance when requested"""
        model = self.get_model(service_type)
        rows = []
        for provider in model.query.order_by(model.created_at.desc(), model.id.desc()).all():
            row = provider.to_dict()
            row['profile_picture_url'] = self.file_service.get_public_url(provider.profile_picture_path)
            if with_balance:
                balance = self.balance_service.calculate_service_provider_balance(service_type, provider.id)
                row['balance'] = balance.net_balance if balance else 0.0
            rows.append(row)
        return rows

    def validate_provider_data(self, service_type: str, data: Dict[str, Any],
                               partial: bool = False) -> Optional[str]:
        if not partial or 'name' in data:
            if not (data.get('name') or '').strip():
                return 'validation_failed'
        if not partial and not (data.get('identity_number') or '').strip():
            return 'validation_failed'
        if data.get('status') and data['status'] not in PROVIDER_STATUSES:
            return 'validation_failed'
        for field in RATE_FIELDS:
            value = data.get(field)
            if value in (None, ''):
                continue
            try:
                if float(value) < 0:
                    return 'invalid_amount'
            except (TypeError, ValueError):
                return 'invalid_amount'
        return None

    def _assign(self, provider, service_type: str, data: Dict[str, Any]) -> None:
        for field in COMMON_FIELDS + EXTRA_FIELDS.get(service_type, ()):
            if field not in data:
                continue
            value = data[field]
            if field in RATE_FIELDS:
                value = float(value) if value not in (None, '') else (None if field == 'price' else 0.0)
            elif isinstance(value, str):
                value = value.strip() or None
            setattr(provider, field, value)

    @TransactionHelper.with_transaction
    def create_provider(self, service_type: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[Any]]:
        """
        Create a provider, with a login account when user_email and
        user_password are given.

        A duplicate identity number is reported as identity_number_exists.

        Returns:
            tuple: (success: bool, error_message: str, provider)
        """
        model = self.get_model(service_type)
        error = self.validate_provider_data(service_type, data)
        if error:
            return False, error, None

        user_email = data.get('user_email')
        user_password = data.get('user_password')
        if user_email or user_password:
            error = self.user_service.validate_credentials(user_email, user_password)
            if error:
                return False, error, None
            if self.user_service.email_exists(user_email):
                return False, 'email_exists', None

        try:
            provider = model(status=data.get('status') or 'active')
            self._assign(provider, service_type, data)
            if user_email:
                user = self.user_service.add_user(
                    user_email, user_password, role=SERVICE_TYPE_ROLES[service_type],
                    full_name=provider.name, phone=provider.phone)
                provider.user_id = user.id
            db.session.add(provider)
            db.session.flush()
        except IntegrityError as e:
            db.session.rollback()
            if is_unique_violation(e):
                return False, unique_violation_message_key(e), None
            logger.error(f"Error adding {service_type} provider: {str(e)}")
            return False, 'error_saving', None

        self.activity_service.log_activity(_activity_type(service_type, 'added'), provider=provider)
        logger.info(f"{service_type} provider {provider.id} created")
        return True, None, provider

    @TransactionHelper.with_transaction
    def update_provider(self, service_type: str, provider_id: int,
                        data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[Any]]:
        provider = self.get_provider(service_type, provider_id)
        if not provider:
            return False, 'not_found', None
        error = self.validate_provider_data(service_type, data, partial=True)
        if error:
            return False, error, None
        try:
            self._assign(provider, service_type, data)
            db.session.flush()
        except IntegrityError as e:
            db.session.rollback()
            if is_unique_violation(e):
                return False, unique_violation_message_key(e), None
            logger.error(f"Error updating {service_type} provider {provider_id}: {str(e)}")
            return False, 'error_saving', None

        self.activity_service.log_activity(_activity_type(service_type, 'updated'), provider=provider)
        return True, None, provider

    @TransactionHelper.with_transaction
    def upload_profile_picture(self, service_type: str, provider_id: int,
                               file) -> Tuple[bool, Optional[str], Optional[str]]:
        provider = self.get_provider(service_type, provider_id)
        if not provider:
            return False, 'not_found', None
        folder = self.file_service.record_folder(service_type, provider_id)
        success, path, error = self.file_service.save_uploaded_file(file, folder, prefix='profile')
        if not success:
            return False, error, None
        if provider.profile_picture_path and provider.profile_picture_path != path:
            self.file_service.delete_file(provider.profile_picture_path)
        provider.profile_picture_path = path
        return True, None, self.file_service.get_public_url(path)

    def delete_provider(self, service_type: str, provider_id: int) -> Tuple[bool, Optional[str]]:
        """
        Delete a provider, then its storage folder, then its login account.

        The steps run one after the other and each is final. When a later
        step fails the earlier ones stay done and a generic error is
        returned.

        Returns:
            tuple: (success: bool, error_message: str)
        """
        model = self.get_model(service_type)
        provider = db.session.get(model, provider_id)
        if not provider:
            return False, 'not_found'

        user_id = provider.user_id
        snapshot = provider.to_dict()

        try:
            db.session.delete(provider)
            self.activity_service.log_activity(_activity_type(service_type, 'deleted'), provider=snapshot)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting {service_type} provider {provider_id}: {str(e)}")
            return False, 'error_deleting_provider'

        success, error = self.file_service.delete_folder(self.file_service.record_folder(service_type, provider_id))
        if not success:
            logger.error(f"Error deleting files of {service_type} provider {provider_id}: {error}")
            return False, 'error_deleting_provider'

        if user_id and db.session.get(User, user_id):
            success, error = self.user_service.delete_user(user_id)
            if not success:
                logger.error(f"Error deleting login of {service_type} provider {provider_id}: {error}")
                return False, 'error_deleting_provider'

        logger.info(f"{service_type} provider {provider_id} deleted")
        return True, None

    def bulk_delete(self, service_type: str, provider_ids: List[int]) -> Tuple[bool, Optional[str], int]:
        """
        Delete several providers, stopping at the first failure.

        Returns:
            tuple: (success: bool, error_message: str, deleted_count: int)
        """
        deleted = 0
        for provider_id in provider_ids:
            success, error = self.delete_provider(service_type, provider_id)
            if not success and error != 'not_found':
                return False, error, deleted
            if success:
                deleted += 1
        return True, None, deleted
