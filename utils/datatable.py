"""
Shared table pipeline for list endpoints

Every list page works the same way: fetch the rows, narrow them with a
free-text search and column filters, sort by one column and cut out the
requested page. This module holds that pipeline once so that routes only
declare which fields are searchable.
"""

import math
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

PAGE_SIZES = (10, 20, 30, 50, 100)
DEFAULT_PAGE_SIZE = PAGE_SIZES[0]
SORT_DIRECTIONS = ('asc', 'desc')

_IGNORED_FILTER_VALUES = (None, '', 'all')


def get_field(record: Any, field_name: str) -> Any:
    """Read a (possibly dotted) field from a dict or an object"""
    value = record
    for part in field_name.split('.'):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    if isinstance(value, Enum):
        return value.value
    return value


def _search_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value).lower()


def filter_records(records: Iterable[Any], search: Optional[str], fields: Sequence[str]) -> List[Any]:
    """Case-insensitive substring search across the given fields"""
    records = list(records)
    term = (search or '').strip().lower()
    if not term or not fields:
        return records

    return [
        record for record in records
        if any(term in _search_text(get_field(record, name)) for name in fields)
    ]


def filter_by_values(records: Iterable[Any], criteria: Optional[Dict[str, Any]] = None, **kwargs) -> List[Any]:
    """
    Exact-match column filters (status, type dropdowns).

    Empty criteria and the value 'all' are ignored. Values are compared as
    lower-cased strings so query-string arguments match ints and enums.
    """
    records = list(records)
    wanted = dict(criteria or {})
    wanted.update(kwargs)
    wanted = {key: value for key, value in wanted.items() if value not in _IGNORED_FILTER_VALUES}
    if not wanted:
        return records

    def matches(record):
        for name, expected in wanted.items():
            actual = get_field(record, name)
            if actual is None or str(actual).lower() != str(expected).lower():
                return False
        return True

    return [record for record in records if matches(record)]


def _sort_key(value: Any):
    # Numbers, dates and strings land in separate groups so mixed columns never raise
    if value is None or value == '':
        return (1, 0, '')
    if isinstance(value, bool):
        return (0, 0, int(value))
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return (1, 0, '')
        return (0, 0, value)
    if isinstance(value, (date, datetime)):
        return (0, 1, value.isoformat())
    return (0, 2, str(value).lower())


def sort_records(records: Iterable[Any], key: Optional[str], direction: str = 'asc') -> List[Any]:
    """
    Stable sort by one field.

    Empty values go last when ascending and first when descending, so a
    descending sort is the mirror image of the ascending one. Rows with equal
    keys keep their original order in both directions.
    """
    records = list(records)
    if not key:
        return records
    reverse = (direction or 'asc').lower() == 'desc'
    return sorted(records, key=lambda record: _sort_key(get_field(record, key)), reverse=reverse)


@dataclass
class Page:
    items: List[Any]
    page: int
    page_size: int
    total: int
    pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def start_index(self) -> int:
        """1-based index of the first row on this page (0 when empty)"""
        if self.total == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end_index(self) -> int:
        return min(self.page * self.page_size, self.total)

    def to_dict(self, serializer: Optional[Callable[[Any], Any]] = None) -> Dict[str, Any]:
        items = [serializer(item) for item in self.items] if serializer else list(self.items)
        return {
            'items': items,
            'pagination': {
                'page': self.page,
                'page_size': self.page_size,
                'total': self.total,
                'pages': self.pages,
                'has_next': self.has_next,
                'has_prev': self.has_prev,
                'page_sizes': list(PAGE_SIZES),
            }
        }


def normalize_page_size(page_size: Any) -> int:
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return page_size if page_size in PAGE_SIZES else DEFAULT_PAGE_SIZE


def paginate(records: Sequence[Any], page: Any = 1, page_size: Any = DEFAULT_PAGE_SIZE) -> Page:
    """Cut a 1-based page out of the records, clamping the page into range"""
    records = list(records)
    page_size = normalize_page_size(page_size)
    total = len(records)
    pages = max(1, math.ceil(total / page_size))

    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    page = min(max(page, 1), pages)

    start = (page - 1) * page_size
    return Page(items=records[start:start + page_size], page=page, page_size=page_size,
                total=total, pages=pages)


@dataclass(frozen=True)
class TableQuery:
    """Search, filter, sort and paging state of one table"""
    search: str = ''
    search_fields: tuple = ()
    sort: Optional[str] = None
    direction: str = 'asc'
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    filters: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_args(cls, args, search_fields: Sequence[str] = (), default_sort: Optional[str] = None,
                  default_direction: str = 'asc', filter_fields: Sequence[str] = (),
                  sortable_fields: Optional[Sequence[str]] = None) -> 'TableQuery':
        """Build a query from request arguments (search, sort, direction, page, page_size)"""
        sort = args.get('sort') or default_sort
        if sortable_fields is not None and sort not in sortable_fields:
            sort = default_sort

        direction = (args.get('direction') or default_direction).lower()
        if direction not in SORT_DIRECTIONS:
            direction = default_direction

        try:
            page = int(args.get('page', 1))
        except (TypeError, ValueError):
            page = 1

        filters = {name: args.get(name) for name in filter_fields if args.get(name) not in _IGNORED_FILTER_VALUES}

        return cls(
            search=(args.get('search') or '').strip(),
            search_fields=tuple(search_fields),
            sort=sort,
            direction=direction,
            page=max(page, 1),
            page_size=normalize_page_size(args.get('page_size', DEFAULT_PAGE_SIZE)),
            filters=filters,
        )

    def with_sort(self, key: str) -> 'TableQuery':
        """Clicking a column: toggle direction on the same column, ascending on a new one, back to page 1"""
        if key == self.sort:
            direction = 'desc' if self.direction == 'asc' else 'asc'
        else:
            direction = 'asc'
        return replace(self, sort=key, direction=direction, page=1)

    def with_page_size(self, page_size: int) -> 'TableQuery':
        return replace(self, page_size=normalize_page_size(page_size), page=1)

    def with_search(self, search: str) -> 'TableQuery':
        return replace(self, search=(search or '').strip(), page=1)

    def with_page(self, page: int) -> 'TableQuery':
        return replace(self, page=max(int(page), 1))


def run_pipeline(records: Iterable[Any], query: TableQuery) -> Page:
    """filter -> sort -> paginate"""
    rows = filter_records(records, query.search, query.search_fields)
    rows = filter_by_values(rows, query.filters)
    rows = sort_records(rows, query.sort, query.direction)
    page = paginate(rows, query.page, query.page_size)
    logger.debug(f"Table pipeline: {page.total} rows after filtering, page {page.page}/{page.pages}")
    return page
