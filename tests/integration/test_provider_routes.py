"""
Integration tests for provider management, balances and payouts
"""

from io import BytesIO
from unittest.mock import patch

import pytest

from models import Guide, User, UserRole, BookingStatus
from services.file_service import FileService
from tests.conftest import login
from tests.factories import GuideFactory, GuideUserFactory, BookingFactory, BookingLineFactory


class TestProviders:

    def test_unknown_provider_type(self, client, admin_headers):
        response = client.get('/api/v1/providers/jugglers', headers=admin_headers)

        assert response.status_code == 404
        assert response.get_json()['error'] == 'INVALID_SERVICE_TYPE'

    def test_create_with_login(self, client, admin_headers, db_session):
        response = client.post('/api/v1/providers/guides', headers=admin_headers, json={
            'name': 'Yossi Mizrahi', 'identity_number': '301234567', 'daily_rate': 550,
            'user_email': 'yossi@travelops.io', 'user_password': 'guide-pass'})

        assert response.status_code == 201
        item = response.get_json()['item']
        assert item['daily_rate'] == 550
        assert User.query.filter_by(email='yossi@travelops.io').one().role == UserRole.GUIDE

        body = client.get(f"/api/v1/providers/guides/{item['id']}", headers=admin_headers).get_json()
        assert body['item']['name'] == 'Yossi Mizrahi'
        assert body['balance']['net_balance'] == 0
        assert body['ratings']['total'] == 0

    def test_duplicate_identity_number(self, client, admin_headers, db_session):
        GuideFactory(identity_number='301234567')
        response = client.post('/api/v1/providers/guides', headers=admin_headers,
                               json={'name': 'Second Yossi', 'identity_number': '301234567'})

        assert response.status_code == 409
        assert response.get_json()['error'] == 'IDENTITY_NUMBER_EXISTS'

    def test_negative_rate(self, client, admin_headers, db_session):
        response = client.post('/api/v1/providers/guides', headers=admin_headers,
                               json={'name': 'Yossi', 'identity_number': '1', 'daily_rate': -5})
        assert response.status_code == 400

    def test_list_and_update(self, client, admin_headers, db_session):
        guide = GuideFactory(name='Noa Peretz')
        GuideFactory()

        body = client.get('/api/v1/providers/guides', headers=admin_headers,
                          query_string={'search': 'noa'}).get_json()
        assert [row['id'] for row in body['items']] == [guide.id]

        response = client.put(f'/api/v1/providers/guides/{guide.id}', headers=admin_headers,
                              json={'status': 'inactive'})
        assert response.status_code == 200
        assert response.get_json()['item']['status'] == 'inactive'

    def test_delete_reports_partial_failure(self, client, admin_headers, db_session):
        user = GuideUserFactory()
        guide_id = GuideFactory(user_id=user.id).id

        with patch.object(FileService, 'delete_folder', return_value=(False, 'disk error')):
            response = client.delete(f'/api/v1/providers/guides/{guide_id}', headers=admin_headers)

        assert response.status_code == 500
        assert response.get_json()['error'] == 'ERROR_DELETING_PROVIDER'
        assert db_session.get(Guide, guide_id) is None
        assert db_session.get(User, user.id) is not None

    def test_bulk_delete(self, client, admin_headers, db_session):
        ids = [GuideFactory().id, GuideFactory().id]

        response = client.post('/api/v1/providers/guides/bulk-delete', headers=admin_headers, json={'ids': ids})

        assert response.status_code == 200
        assert response.get_json()['deleted'] == 2
        assert Guide.query.count() == 0

    @pytest.mark.parametrize('payload', [{}, {'ids': []}, {'ids': ['1']}])
    def test_bulk_delete_needs_ids(self, client, admin_headers, payload):
        response = client.post('/api/v1/providers/guides/bulk-delete', headers=admin_headers, json=payload)
        assert response.status_code == 400

    def test_picture_upload(self, client, admin_headers, db_session):
        guide = GuideFactory()
        response = client.post(f'/api/v1/providers/guides/{guide.id}/picture', headers=admin_headers,
                               data={'file': (BytesIO(b'\x89PNG\r\n'), 'me.png')},
                               content_type='multipart/form-data')

        assert response.status_code == 200
        assert response.get_json()['url']

    def test_customer_is_refused(self, client, customer_headers):
        assert client.get('/api/v1/providers/guides', headers=customer_headers).status_code == 403


class TestPayouts:

    def test_payment_reduces_balance(self, client, admin_headers, db_session):
        guide = GuideFactory()
        BookingLineFactory(booking=BookingFactory(status=BookingStatus.CONFIRMED), service_id=guide.id,
                           booked_price=500.0, days=2)

        response = client.post('/api/v1/payouts', headers=admin_headers, json={
            'service_type': 'guides', 'service_id': guide.id, 'amount': 400, 'payment_method': 'bank_transfer'})
        assert response.status_code == 201

        balance = client.get(f'/api/v1/providers/guides/{guide.id}/balance', headers=admin_headers).get_json()
        assert balance['balance']['total_earned'] == 1000
        assert balance['balance']['net_balance'] == 600

        payouts = client.get(f'/api/v1/providers/guides/{guide.id}/payouts', headers=admin_headers).get_json()
        assert len(payouts['items']) == 1

        bookings = client.get(f'/api/v1/providers/guides/{guide.id}/bookings', headers=admin_headers).get_json()
        assert len(bookings['items']) == 1

        summary = client.get('/api/v1/providers/balance-summary', headers=admin_headers).get_json()['summary']
        assert summary['by_type']['guides']['total_owed'] == 600

    def test_missing_amount(self, client, admin_headers, db_session):
        guide = GuideFactory()
        response = client.post('/api/v1/payouts', headers=admin_headers,
                               json={'service_type': 'guides', 'service_id': guide.id})

        assert response.status_code == 400
        assert 'amount' in response.get_json()['errors']

    def test_pay_and_delete(self, client, admin_headers, db_session):
        guide = GuideFactory()
        payout_id = client.post('/api/v1/payouts', headers=admin_headers, json={
            'service_type': 'guides', 'service_id': guide.id, 'amount': 100}).get_json()['item']['id']

        assert client.post(f'/api/v1/payouts/{payout_id}/pay', headers=admin_headers, json={}).status_code == 404
        assert client.delete(f'/api/v1/payouts/{payout_id}', headers=admin_headers).status_code == 200
        assert client.get('/api/v1/payouts', headers=admin_headers).get_json()['items'] == []


class TestProviderPortal:

    def test_provider_sees_own_bookings_and_revenue(self, client, db_session):
        user = GuideUserFactory()
        guide = GuideFactory(user_id=user.id)
        BookingLineFactory(service_id=guide.id, booked_price=700.0)
        BookingLineFactory()
        headers = login(client, user)

        bookings = client.get('/api/v1/services/my-bookings', headers=headers).get_json()
        assert len(bookings['items']) == 1

        revenue = client.get('/api/v1/services/revenue', headers=headers).get_json()['revenue']
        assert revenue['total_revenue'] == 700

        trend = client.get('/api/v1/services/revenue-trend', headers=headers,
                           query_string={'months': 3}).get_json()['trend']
        assert len(trend) == 3

        balance = client.get('/api/v1/services/balance', headers=headers).get_json()['balance']
        assert balance['total_earnings'] == 700

        assert client.get('/api/v1/services/transactions', headers=headers).get_json()['items'] == []
