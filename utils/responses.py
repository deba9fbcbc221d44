"""
JSON response helpers shared by the API blueprints
"""

from typing import Optional
from flask import jsonify, request
from utils.datatable import TableQuery, run_pipeline
from utils.i18n import toast

# Message keys that map to a status other than 400
STATUS_BY_KEY = {
    'not_found': 404,
    'booking_not_found': 404,
    'unauthorized': 403,
    'invalid_credentials': 401,
    'account_inactive': 401,
    'email_exists': 409,
    'identity_number_exists': 409,
    'code_exists': 409,
    'name_exists': 409,
    'bill_number_exists': 409,
    'payment_already_exists': 409,
    'tax_invoice_exists': 409,
    'error_saving': 500,
    'error_deleting': 500,
    'error_deleting_provider': 500,
    'error_loading_data': 500,
}


def api_error(key: str, status: Optional[int] = None, **extra):
    """Failure toast with an upper-case error code, e.g. not_found -> NOT_FOUND"""
    payload = toast(key, success=False)
    payload['error'] = key.upper()
    payload.update(extra)
    return jsonify(payload), status or STATUS_BY_KEY.get(key, 400)


def api_success(key: Optional[str] = None, status: int = 200, message_args: Optional[dict] = None, **data):
    payload = toast(key, **(message_args or {})) if key else {'success': True}
    payload.update(data)
    return jsonify(payload), status


def table_query(records, serializer, search_fields=(), default_sort=None, default_direction='asc',
                filter_fields=(), sort_fields=()) -> TableQuery:
    """Table query of the current request; only shown, searched, filtered or listed columns sort"""
    sortable = set(search_fields) | set(filter_fields) | set(sort_fields)
    if default_sort:
        sortable.add(default_sort)
    if records:
        sortable.update(serializer(records[0]))
    return TableQuery.from_args(request.args, search_fields=search_fields, default_sort=default_sort,
                                default_direction=default_direction, filter_fields=filter_fields,
                                sortable_fields=tuple(sortable))


def table_response(records, serializer=None, search_fields=(), default_sort=None, default_direction='asc',
                   filter_fields=(), sort_fields=(), **extra):
    """Run request args through the table pipeline and return one page"""
    records = list(records)
    serializer = serializer or (lambda record: record.to_dict())
    query = table_query(records, serializer, search_fields, default_sort, default_direction,
                        filter_fields, sort_fields)
    page = run_pipeline(records, query)
    payload = {'success': True}
    payload.update(page.to_dict(serializer))
    payload.update(extra)
    return jsonify(payload)
