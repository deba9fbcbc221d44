"""
Integration tests for user administration and invitations
"""

import re

from models import User, UserStatus


class TestUsers:

    def test_create_and_list(self, client, admin_headers, db_session):
        response = client.post('/api/v1/users', headers=admin_headers, json={
            'email': 'Planner@TravelOps.io', 'password': 'planner-pass', 'full_name': 'Rina Cohen',
            'role': 'trip_planner'})

        assert response.status_code == 201
        assert response.get_json()['user']['email'] == 'planner@travelops.io'

        body = client.get('/api/v1/users', headers=admin_headers, query_string={'role': 'trip_planner'}).get_json()
        assert [item['full_name'] for item in body['items']] == ['Rina Cohen']

    def test_duplicate_email(self, client, admin_headers, customer_user):
        response = client.post('/api/v1/users', headers=admin_headers,
                               json={'email': customer_user.email, 'password': 'another-pass'})
        assert response.status_code == 409

    def test_short_password(self, client, admin_headers):
        response = client.post('/api/v1/users', headers=admin_headers,
                               json={'email': 'new@travelops.io', 'password': '123'})

        assert response.status_code == 400
        assert 'password' in response.get_json()['errors']

    def test_delete(self, client, admin_headers, customer_user, db_session):
        user_id = customer_user.id
        assert client.delete(f'/api/v1/users/{user_id}', headers=admin_headers).status_code == 200
        assert db_session.get(User, user_id) is None

    def test_cannot_delete_self(self, client, admin_user, admin_headers):
        response = client.delete(f'/api/v1/users/{admin_user.id}', headers=admin_headers)
        assert response.status_code == 400


class TestInvitations:

    def test_invite_then_accept(self, client, admin_headers, mail_post, db_session):
        response = client.post('/api/v1/users/invite', headers=admin_headers,
                               json={'email': 'guest@travelops.io', 'full_name': 'Guest'})

        assert response.status_code == 201
        assert response.get_json()['user']['status'] == UserStatus.PENDING.value
        assert mail_post.call_args.kwargs['json']['to'] == 'guest@travelops.io'

        token = re.search(r'accept-invite\?token=([\w.\-]+)', mail_post.call_args.kwargs['json']['html']).group(1)
        response = client.post('/api/v1/users/accept-invitation', json={'token': token, 'password': 'welcome-1'})
        assert response.status_code == 200
        assert response.get_json()['user']['status'] == 'active'

        login = client.post('/api/v1/auth/login', json={'email': 'guest@travelops.io', 'password': 'welcome-1'})
        assert login.status_code == 200

        replay = client.post('/api/v1/users/accept-invitation', json={'token': token, 'password': 'taken-over'})
        assert replay.get_json()['error'] == 'INVALID_INVITATION'

    def test_email_alone_cannot_activate_invited_admin(self, client, admin_headers, mail_post, db_session):
        client.post('/api/v1/users/invite', headers=admin_headers,
                    json={'email': 'newadmin@travelops.io', 'role': 'admin'})

        response = client.post('/api/v1/users/accept-invitation',
                               json={'email': 'newadmin@travelops.io', 'password': 'attacker-pw'})
        assert response.status_code == 400
        assert 'token' in response.get_json()['errors']

        login = client.post('/api/v1/auth/login', json={'email': 'newadmin@travelops.io', 'password': 'attacker-pw'})
        assert login.status_code == 401

    def test_wrong_token(self, client, admin_headers, mail_post, db_session):
        client.post('/api/v1/users/invite', headers=admin_headers, json={'email': 'guest@travelops.io'})

        response = client.post('/api/v1/users/accept-invitation',
                               json={'token': 'eyJ1c2VyX2lkIjoyfQ.forged.signature', 'password': 'welcome-1'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'INVALID_INVITATION'
        assert User.query.filter_by(email='guest@travelops.io').first().status == UserStatus.PENDING


def test_user_list_ignores_sort_on_hidden_columns(client, admin_headers, customer_user):
    response = client.get('/api/v1/users', headers=admin_headers,
                          query_string={'sort': 'password_hash', 'direction': 'asc'})

    assert response.status_code == 200
    assert all('password_hash' not in item for item in response.get_json()['items'])
