"""
Unit tests for service provider management
"""

import io
from unittest.mock import patch

import pytest
from werkzeug.datastructures import FileStorage

from models import Guide, Paramedic, TravelCompany, User, UserRole, ActivityLog
from services.file_service import FileService
from services.provider_service import ProviderService
from services.user_service import UserService
from tests.factories import GuideFactory, ParamedicFactory


@pytest.fixture
def provider_service(app):
    return ProviderService()


class TestCreateProvider:

    def test_create_guide(self, provider_service, db_session):
        success, error, guide = provider_service.create_provider('guides', {
            'name': ' Yossi Mizrahi ', 'identity_number': '123456789', 'daily_rate': '550', 'price': ''})

        assert success is True
        assert error is None
        assert isinstance(guide, Guide)
        assert guide.name == 'Yossi Mizrahi'
        assert guide.daily_rate == 550.0
        assert guide.price is None
        assert guide.status == 'active'
        assert ActivityLog.query.filter_by(type='guide_added').count() == 1

    def test_type_specific_fields(self, provider_service, db_session):
        _, _, company = provider_service.create_provider('travel_companies', {
            'name': 'Galil Buses', 'identity_number': '51-555', 'vehicle_count': 12, 'services_offered': 'Coaches'})

        assert isinstance(company, TravelCompany)
        assert company.vehicle_count == 12
        assert ActivityLog.query.filter_by(type='provider_added').count() == 1

    def test_login_account_is_created_with_role(self, provider_service, db_session):
        success, _, medic = provider_service.create_provider('paramedics', {
            'name': 'Lina', 'identity_number': '222', 'user_email': 'Lina@TravelOps.io', 'user_password': 'medic123'})

        assert success is True
        user = db_session.get(User, medic.user_id)
        assert user.email == 'lina@travelops.io'
        assert user.role == UserRole.PARAMEDIC
        assert user.full_name == 'Lina'

    def test_short_login_password(self, provider_service, db_session):
        result = provider_service.create_provider('guides', {
            'name': 'Avi', 'identity_number': '1', 'user_email': 'avi@travelops.io', 'user_password': '12'})
        assert result == (False, 'password_too_short', None)

    def test_duplicate_identity_number(self, provider_service, db_session):
        GuideFactory(identity_number='999000111')

        result = provider_service.create_provider('guides', {'name': 'Copy', 'identity_number': '999000111'})

        assert result == (False, 'identity_number_exists', None)
        assert Guide.query.count() == 1

    def test_duplicate_does_not_keep_login(self, provider_service, db_session):
        GuideFactory(identity_number='999000111')
        provider_service.create_provider('guides', {'name': 'Copy', 'identity_number': '999000111',
                                                    'user_email': 'copy@travelops.io', 'user_password': 'secret1'})
        assert User.query.filter_by(email='copy@travelops.io').first() is None

    @pytest.mark.parametrize('data,expected', [
        ({'identity_number': '1'}, 'validation_failed'),
        ({'name': 'A'}, 'validation_failed'),
        ({'name': 'A', 'identity_number': '1', 'status': 'retired'}, 'validation_failed'),
        ({'name': 'A', 'identity_number': '1', 'hourly_rate': -10}, 'invalid_amount'),
        ({'name': 'A', 'identity_number': '1', 'daily_rate': 'free'}, 'invalid_amount'),
    ])
    def test_validation(self, provider_service, db_session, data, expected):
        assert provider_service.create_provider('guides', data) == (False, expected, None)

    def test_unknown_type(self, provider_service):
        with pytest.raises(ValueError):
            provider_service.get_model('astronauts')


class TestUpdateProvider:

    def test_partial_update(self, provider_service, db_session):
        guide = GuideFactory()
        success, _, updated = provider_service.update_provider('guides', guide.id, {'daily_rate': 700})

        assert success is True
        assert updated.daily_rate == 700
        assert updated.name == guide.name

    def test_blank_name_is_rejected(self, provider_service, db_session):
        guide = GuideFactory()
        assert provider_service.update_provider('guides', guide.id, {'name': ''})[1] == 'validation_failed'

    def test_missing(self, provider_service, db_session):
        assert provider_service.update_provider('guides', 404, {'name': 'x'}) == (False, 'not_found', None)


class TestListProviders:

    def test_rows_carry_balance_and_picture_url(self, provider_service, db_session):
        GuideFactory(profile_picture_path='guides/1/profile.png')

        rows = provider_service.list_providers('guides')

        assert len(rows) == 1
        assert rows[0]['balance'] == 0.0
        assert rows[0]['profile_picture_url'].endswith('/guides/1/profile.png')


class TestDeleteProvider:

    def test_delete_removes_login(self, provider_service, db_session):
        _, _, guide = provider_service.create_provider('guides', {
            'name': 'Avi', 'identity_number': '77', 'user_email': 'avi@travelops.io', 'user_password': 'secret1'})

        assert provider_service.delete_provider('guides', guide.id) == (True, None)

        assert Guide.query.count() == 0
        assert User.query.filter_by(email='avi@travelops.io').first() is None
        assert ActivityLog.query.filter_by(type='guide_deleted').count() == 1

    def test_delete_missing(self, provider_service, db_session):
        assert provider_service.delete_provider('paramedics', 12) == (False, 'not_found')

    def test_folder_failure_keeps_row_deleted_and_login(self, provider_service, db_session):
        _, _, guide = provider_service.create_provider('guides', {
            'name': 'Avi', 'identity_number': '78', 'user_email': 'avi@travelops.io', 'user_password': 'secret1'})
        guide_id = guide.id

        with patch.object(FileService, 'delete_folder', return_value=(False, 'disk error')), \
                patch.object(UserService, 'delete_user') as delete_user:
            result = provider_service.delete_provider('guides', guide_id)

        assert result == (False, 'error_deleting_provider')
        assert db_session.get(Guide, guide_id) is None
        assert User.query.filter_by(email='avi@travelops.io').first() is not None
        delete_user.assert_not_called()

    def test_login_failure_keeps_row_and_folder_deleted(self, provider_service, db_session):
        _, _, guide = provider_service.create_provider('guides', {
            'name': 'Avi', 'identity_number': '79', 'user_email': 'avi@travelops.io', 'user_password': 'secret1'})
        guide_id = guide.id
        upload = FileStorage(stream=io.BytesIO(b'\x89PNG fake'), filename='me.png', content_type='image/png')
        provider_service.upload_profile_picture('guides', guide_id, upload)

        with patch.object(UserService, 'delete_user', return_value=(False, 'error_deleting')):
            result = provider_service.delete_provider('guides', guide_id)

        assert result == (False, 'error_deleting_provider')
        assert db_session.get(Guide, guide_id) is None
        assert provider_service.file_service.list_folder(f"guides/{guide_id}") == []
        assert User.query.filter_by(email='avi@travelops.io').first() is not None

    def test_bulk_delete_counts_deleted(self, provider_service, db_session):
        medics = [ParamedicFactory() for _ in range(3)]
        ids = [medic.id for medic in medics[:2]] + [9999]

        assert provider_service.bulk_delete('paramedics', ids) == (True, None, 2)
        assert Paramedic.query.count() == 1


class TestProfilePicture:

    def test_upload(self, provider_service, db_session):
        guide = GuideFactory()
        upload = FileStorage(stream=io.BytesIO(b'\x89PNG fake'), filename='me.png', content_type='image/png')

        success, error, url = provider_service.upload_profile_picture('guides', guide.id, upload)

        assert success is True
        assert error is None
        assert guide.profile_picture_path.startswith(f"guides/{guide.id}/profile_")
        assert url.endswith(guide.profile_picture_path)

    def test_new_picture_replaces_old_file(self, provider_service, db_session):
        guide = GuideFactory()
        for name in ('first.png', 'second.png'):
            upload = FileStorage(stream=io.BytesIO(b'\x89PNG fake'), filename=name, content_type='image/png')
            provider_service.upload_profile_picture('guides', guide.id, upload)

        files = provider_service.file_service.list_folder(f"guides/{guide.id}")

        assert [entry['path'] for entry in files] == [guide.profile_picture_path]
        assert files[0]['name'].endswith('second.png')

    def test_rejects_unknown_extension(self, provider_service, db_session):
        guide = GuideFactory()
        upload = FileStorage(stream=io.BytesIO(b'MZ'), filename='virus.exe')

        success, error, _ = provider_service.upload_profile_picture('guides', guide.id, upload)

        assert success is False
        assert error.startswith('File type not allowed')
        assert guide.profile_picture_path is None
