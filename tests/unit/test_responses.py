"""
Unit tests for the JSON response helpers
"""

from models import User
from utils.responses import table_query, api_error
from tests.factories import UserFactory


def _query(app, url, records, **options):
    with app.test_request_context(url):
        return table_query(records, lambda record: record.to_dict(), **options)


class TestTableQuery:

    def test_hidden_column_falls_back_to_default_sort(self, app, db_session):
        UserFactory()
        query = _query(app, '/?sort=password_hash&direction=asc', User.query.all(),
                       search_fields=('email',), default_sort='created_at')

        assert query.sort == 'created_at'
        assert query.direction == 'asc'

    def test_visible_and_searched_columns_sort(self, app, db_session):
        UserFactory()
        users = User.query.all()

        assert _query(app, '/?sort=full_name', users, default_sort='created_at').sort == 'full_name'
        assert _query(app, '/?sort=school.name', users, search_fields=('school.name',)).sort == 'school.name'

    def test_listed_sort_field_without_rows(self, app):
        assert _query(app, '/?sort=trip_date', [], sort_fields=('trip_date',)).sort == 'trip_date'
        assert _query(app, '/?sort=trip_date', []).sort is None


def test_api_error_status_from_key(app):
    with app.test_request_context('/?lang=en'):
        response, status = api_error('bill_number_exists')

    assert status == 409
    assert response.get_json()['error'] == 'BILL_NUMBER_EXISTS'
