"""
Unit tests for the shared table pipeline
"""

from datetime import date

from werkzeug.datastructures import MultiDict

from models import BookingStatus
from utils.datatable import (filter_records, filter_by_values, sort_records, paginate, normalize_page_size,
                             TableQuery, run_pipeline, get_field, DEFAULT_PAGE_SIZE)


ROWS = [
    {'name': 'Alpha Tours', 'city': 'Haifa', 'price': 300, 'status': 'active', 'owner': {'name': 'Dana'}},
    {'name': 'beta trips', 'city': 'Nazareth', 'price': None, 'status': 'inactive', 'owner': {'name': 'Omar'}},
    {'name': 'Gamma', 'city': 'Haifa', 'price': 120, 'status': 'active', 'owner': None},
    {'name': 'Delta', 'city': 'Eilat', 'price': 120, 'status': 'active', 'owner': {'name': 'Rami'}},
]


class TestFieldAccess:

    def test_dotted_field_on_dicts(self):
        assert get_field(ROWS[0], 'owner.name') == 'Dana'
        assert get_field(ROWS[2], 'owner.name') is None

    def test_enum_values_are_unwrapped(self):
        assert get_field({'status': BookingStatus.CONFIRMED}, 'status') == 'confirmed'


class TestSearch:

    def test_case_insensitive_substring(self):
        result = filter_records(ROWS, 'TRIPS', ('name',))
        assert [row['name'] for row in result] == ['beta trips']

    def test_search_across_nested_fields(self):
        result = filter_records(ROWS, 'oma', ('name', 'owner.name'))
        assert len(result) == 1
        assert result[0]['city'] == 'Nazareth'

    def test_blank_search_keeps_everything(self):
        assert len(filter_records(ROWS, '   ', ('name',))) == len(ROWS)

    def test_dates_are_searchable_as_iso(self):
        rows = [{'trip_date': date(2025, 3, 14)}, {'trip_date': date(2025, 4, 1)}]
        assert filter_records(rows, '2025-03', ('trip_date',)) == [rows[0]]


class TestValueFilters:

    def test_exact_match_filters(self):
        result = filter_by_values(ROWS, {'city': 'haifa', 'status': 'active'})
        assert [row['name'] for row in result] == ['Alpha Tours', 'Gamma']

    def test_all_and_empty_values_are_ignored(self):
        assert len(filter_by_values(ROWS, {'status': 'all', 'city': ''})) == len(ROWS)

    def test_numbers_match_query_strings(self):
        assert len(filter_by_values(ROWS, price='120')) == 2


class TestSorting:

    def test_ascending_puts_empty_values_last(self):
        result = sort_records(ROWS, 'price', 'asc')
        assert [row['price'] for row in result] == [120, 120, 300, None]

    def test_descending_puts_empty_values_first(self):
        result = sort_records(ROWS, 'price', 'desc')
        assert result[0]['price'] is None
        assert result[1]['price'] == 300

    def test_sort_is_stable_in_both_directions(self):
        ascending = sort_records(ROWS, 'price', 'asc')
        assert [row['name'] for row in ascending[:2]] == ['Gamma', 'Delta']
        descending = sort_records(ROWS, 'price', 'desc')
        assert [row['name'] for row in descending[2:]] == ['Gamma', 'Delta']

    def test_strings_sort_case_insensitively(self):
        result = sort_records(ROWS, 'name')
        assert [row['name'] for row in result] == ['Alpha Tours', 'beta trips', 'Delta', 'Gamma']

    def test_no_key_keeps_order(self):
        assert sort_records(ROWS, None) == ROWS


class TestPagination:

    def test_page_is_clamped_into_range(self):
        records = list(range(25))
        page = paginate(records, page=9, page_size=10)
        assert page.page == 3
        assert page.items == [20, 21, 22, 23, 24]
        assert page.has_next is False
        assert page.has_prev is True
        assert (page.start_index, page.end_index) == (21, 25)

    def test_empty_records_have_one_page(self):
        page = paginate([], page=1)
        assert page.pages == 1
        assert page.total == 0
        assert page.start_index == 0

    def test_unknown_page_size_falls_back(self):
        assert normalize_page_size(7) == DEFAULT_PAGE_SIZE
        assert normalize_page_size('abc') == DEFAULT_PAGE_SIZE
        assert normalize_page_size('50') == 50

    def test_to_dict_applies_serializer(self):
        data = paginate([1, 2, 3]).to_dict(lambda value: value * 10)
        assert data['items'] == [10, 20, 30]
        assert data['pagination']['total'] == 3


class TestTableQuery:

    def test_from_args(self):
        args = MultiDict({'search': ' haifa ', 'sort': 'price', 'direction': 'DESC',
                          'page': '2', 'page_size': '20', 'status': 'active', 'city': 'all'})
        query = TableQuery.from_args(args, search_fields=('city',), filter_fields=('status', 'city'))
        assert query.search == 'haifa'
        assert query.sort == 'price'
        assert query.direction == 'desc'
        assert query.page == 2
        assert query.page_size == 20
        assert query.filters == {'status': 'active'}

    def test_invalid_direction_and_page_use_defaults(self):
        query = TableQuery.from_args(MultiDict({'direction': 'sideways', 'page': 'x'}),
                                     default_sort='name', default_direction='desc')
        assert query.direction == 'desc'
        assert query.page == 1
        assert query.sort == 'name'

    def test_unsortable_column_falls_back(self):
        query = TableQuery.from_args(MultiDict({'sort': 'password_hash'}), default_sort='name',
                                     sortable_fields=('name', 'city'))
        assert query.sort == 'name'

    def test_with_sort_toggles_and_resets_page(self):
        query = TableQuery(sort='name', direction='asc', page=3)
        toggled = query.with_sort('name')
        assert (toggled.direction, toggled.page) == ('desc', 1)
        other = toggled.with_sort('city')
        assert (other.sort, other.direction) == ('city', 'asc')

    def test_run_pipeline(self):
        query = TableQuery(search='a', search_fields=('city',), sort='name', filters={'status': 'active'})
        page = run_pipeline(ROWS, query)
        assert [row['name'] for row in page.items] == ['Alpha Tours', 'Delta', 'Gamma']

    def test_search_and_page_size_reset_page(self):
        query = TableQuery(page=4, page_size=20)

        assert query.with_search('  galil ').search == 'galil'
        assert query.with_search('galil').page == 1
        assert (query.with_page_size(50).page_size, query.with_page_size(50).page) == (50, 1)
        assert query.with_page_size(7).page_size == 10
        assert query.with_page(0).page == 1
        assert query.with_page('3').page == 3
