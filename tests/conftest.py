"""
Pytest configuration and fixtures for Travel Ops testing
"""

import os
from unittest.mock import patch, MagicMock

import pytest

# Set test environment before importing app
os.environ.update({
    'FLASK_ENV': 'testing',
    'TESTING': 'true',
    'SESSION_SECRET': 'test_secret_key_for_testing_only',
    'JWT_SECRET_KEY': 'test_jwt_secret_for_testing_only',
    'DATABASE_URL': 'sqlite:///:memory:',
    'LOG_LEVEL': 'WARNING',
})

from app import create_app, db
from tests.factories import AdminUserFactory, UserFactory, TEST_PASSWORD


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'STORAGE_ROOT': str(tmp_path / 'storage'),
        'EMAIL_FUNCTION_URL': 'https://mail.travelops.io/send',
        'EMAIL_FUNCTION_TOKEN': 'test-token',
        'DEFAULT_LANGUAGE': 'en',
        'TAX_RATE': 18.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Database session for testing"""
    yield db.session
    db.session.rollback()


@pytest.fixture
def mail_post():
    """Outbound email calls, answered with 200"""
    with patch('services.notification_service.requests.post') as post:
        post.return_value = MagicMock(ok=True, status_code=200)
        yield post


@pytest.fixture
def admin_user(db_session):
    return AdminUserFactory()


@pytest.fixture
def customer_user(db_session):
    return UserFactory()


def login(client, user, password=TEST_PASSWORD):
    """Log in through the API and return the bearer headers"""
    response = client.post('/api/v1/auth/login', json={'email': user.email, 'password': password})
    assert response.status_code == 200, response.get_json()
    token = response.get_json()['access_token']
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, admin_user):
    return login(client, admin_user)


@pytest.fixture
def customer_headers(client, customer_user):
    return login(client, customer_user)
