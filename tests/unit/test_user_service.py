"""
Unit tests for login account administration
"""

import pytest
from itsdangerous import URLSafeTimedSerializer

from models import User, UserRole, UserStatus
from services.user_service import UserService
from tests.factories import UserFactory, GuideFactory, SchoolFactory, TEST_PASSWORD


@pytest.fixture
def user_service(app):
    return UserService()


class TestCreateUser:

    def test_creates_active_user_with_profile(self, user_service, db_session):
        success, error, user = user_service.create_user(
            ' Dana@TravelOps.io ', 'secret99', {'full_name': 'Dana Cohen', 'role': 'trip_planner', 'language': 'ar'})

        assert success is True
        assert error is None
        assert user.email == 'dana@travelops.io'
        assert user.role == UserRole.TRIP_PLANNER
        assert user.status == UserStatus.ACTIVE
        assert user.language == 'ar'
        assert user.check_password('secret99')

    @pytest.mark.parametrize('email,password,expected', [
        ('', 'secret99', 'email_password_required'),
        ('a@travelops.io', '', 'email_password_required'),
        ('a@travelops.io', '123', 'password_too_short'),
    ])
    def test_credential_checks(self, user_service, db_session, email, password, expected):
        assert user_service.create_user(email, password) == (False, expected, None)

    def test_duplicate_email(self, user_service, db_session):
        existing = UserFactory()
        assert user_service.create_user(existing.email.upper(), 'secret99') == (False, 'email_exists', None)

    def test_bad_profile_removes_new_login(self, user_service, db_session):
        success, error, _ = user_service.create_user('ghost@travelops.io', 'secret99', {'role': 'pilot'})

        assert (success, error) == (False, 'error_saving')
        assert User.query.filter_by(email='ghost@travelops.io').first() is None


class TestInvitations:

    def test_invite_creates_pending_user_and_sends_email(self, user_service, db_session, mail_post):
        success, _, user = user_service.invite_user('new@travelops.io', {'full_name': 'Rami'})

        assert success is True
        assert user.status == UserStatus.PENDING
        assert user.invited_at is not None
        mail_post.assert_called_once()
        assert mail_post.call_args.kwargs['json']['to'] == 'new@travelops.io'

    def test_failed_email_still_creates_user(self, user_service, db_session, mail_post):
        mail_post.return_value.ok = False
        success, _, user = user_service.invite_user('later@travelops.io')
        assert success is True
        assert user.id is not None

    def test_invite_requires_email(self, user_service, db_session):
        assert user_service.invite_user('') == (False, 'email_password_required', None)

    def test_invitation_link_carries_token_not_email(self, user_service, db_session, mail_post):
        user_service.invite_user('new@travelops.io')

        html = mail_post.call_args.kwargs['json']['html']
        assert 'accept-invite?token=' in html
        assert 'email=new@travelops.io' not in html

    def test_accept_invitation(self, user_service, db_session, mail_post):
        _, _, invited = user_service.invite_user('join@travelops.io')
        token = user_service.generate_invitation_token(invited)

        success, _, user = user_service.accept_invitation(token, 'newpass1')

        assert success is True
        assert user.status == UserStatus.ACTIVE
        assert user.check_password('newpass1')

    def test_token_is_single_use(self, user_service, db_session, mail_post):
        _, _, invited = user_service.invite_user('join@travelops.io')
        token = user_service.generate_invitation_token(invited)
        user_service.accept_invitation(token, 'newpass1')

        assert user_service.accept_invitation(token, 'other99') == (False, 'invalid_invitation', None)

    @pytest.mark.parametrize('token', ['', None, 'not-a-token'])
    def test_missing_or_forged_token(self, user_service, db_session, mail_post, token):
        user_service.invite_user('join@travelops.io')
        assert user_service.accept_invitation(token, 'newpass1') == (False, 'invalid_invitation', None)

    def test_token_signed_with_another_key(self, app, user_service, db_session, mail_post):
        _, _, invited = user_service.invite_user('join@travelops.io')
        forged = URLSafeTimedSerializer('guessed-secret', salt='user-invitation').dumps(
            {'user_id': invited.id, 'key': invited.password_hash[-16:]})

        assert user_service.accept_invitation(forged, 'newpass1')[1] == 'invalid_invitation'
        assert invited.status == UserStatus.PENDING

    def test_expired_token(self, app, user_service, db_session, mail_post):
        _, _, invited = user_service.invite_user('join@travelops.io')
        token = user_service.generate_invitation_token(invited)
        app.config['INVITATION_MAX_AGE'] = -1

        assert user_service.accept_invitation(token, 'newpass1')[1] == 'invitation_expired'

    def test_uninvited_user_cannot_accept(self, user_service, db_session):
        user = UserFactory()
        token = user_service.generate_invitation_token(user)
        assert user_service.accept_invitation(token, 'newpass1')[1] == 'invalid_invitation'


class TestDeleteUser:

    def test_linked_rows_are_detached(self, user_service, db_session):
        user = UserFactory(role=UserRole.GUIDE)
        guide = GuideFactory(user_id=user.id)
        school = SchoolFactory(user_id=user.id)

        assert user_service.delete_user(user.id) == (True, None)

        db_session.refresh(guide)
        assert guide.user_id is None
        db_session.refresh(school)
        assert school.user_id is None
        assert User.query.count() == 0

    def test_missing_user(self, user_service, db_session):
        assert user_service.delete_user(999) == (False, 'not_found')


class TestAuthenticate:

    def test_success_records_login(self, user_service, db_session):
        user = UserFactory()
        success, error, result = user_service.authenticate(user.email, TEST_PASSWORD)
        assert (success, error, result) == (True, None, user)
        assert user.last_login is not None

    def test_wrong_password(self, user_service, db_session):
        user = UserFactory()
        assert user_service.authenticate(user.email, 'wrong-pass') == (False, 'invalid_credentials', None)

    def test_unknown_email(self, user_service, db_session):
        assert user_service.authenticate('nobody@travelops.io', 'whatever')[1] == 'invalid_credentials'

    def test_suspended_account(self, user_service, db_session):
        user = UserFactory(status=UserStatus.SUSPENDED)
        assert user_service.authenticate(user.email, TEST_PASSWORD)[1] == 'account_inactive'
