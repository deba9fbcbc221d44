"""
Admin API
Back-office tables for admins and trip planners: customers, deals, bills,
reference data, trip plans, logs, balances and company settings.
"""

from collections import namedtuple
import logging

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import IntegrityError
from wtforms.fields.core import UnboundField

from app import csrf, db
from auth import admin_required, get_current_api_user
from forms import (validate_payload, CustomerForm, CarForm, SchoolForm, DestinationForm, EducationProgramForm,
                   LicenseForm, SubscriptionForm, RatingForm, CompanySettingsForm, DealForm, BillForm,
                   BillStatusForm, TripPlanForm)
from models import (Customer, Car, CarProvider, School, Destination, EducationProgram, License, Subscription,
                    Rating, Deal, Bill, TripPlan, CompanySettings)
from services import (ActivityService, BalanceService, ProviderBalanceService, BillService, DealService,
                      TripPlanService, ReportingService, FileService)
from services.transaction_helper import TransactionHelper, is_unique_violation, unique_violation_message_key
from utils.responses import api_error, api_success, table_response

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/v1/admin')

activity_service = ActivityService()
balance_service = BalanceService()
provider_balance_service = ProviderBalanceService()
bill_service = BillService()
deal_service = DealService()
trip_plan_service = TripPlanService()
reporting_service = ReportingService()
file_service = FileService()

Resource = namedtuple('Resource', 'model form search_fields filter_fields default_sort activity')

# Plain tables edited field by field; activity is the prefix of the *_added/_updated/_deleted log types
RESOURCES = {
    'customers': Resource(Customer, CustomerForm, ('name', 'id_number', 'phone', 'email', 'car_number'),
                          ('customer_type',), 'name', 'customer'),
    'cars': Resource(Car, CarForm, ('title', 'brand', 'model', 'car_number', 'color'),
                     ('status', 'provider_id'), 'created_at', 'car'),
    'schools': Resource(School, SchoolForm, ('name', 'code', 'director_name', 'email', 'phone'),
                        ('status', 'type'), 'name', None),
    'destinations': Resource(Destination, DestinationForm, ('name', 'zone', 'address'),
                             ('status', 'zone'), 'name', None),
    'education-programs': Resource(EducationProgram, EducationProgramForm, ('name', 'description'),
                                   ('status',), 'name', None),
    'licenses': Resource(License, LicenseForm, ('title', 'description'), (), 'title', None),
    'subscriptions': Resource(Subscription, SubscriptionForm, ('status',), ('status', 'license_id', 'user_id'),
                              'created_at', None),
    'ratings': Resource(Rating, RatingForm, ('service_type', 'comment'), ('service_type', 'service_id', 'rating'),
                        'created_at', None),
}


def _current_user_id():
    user = get_current_api_user()
    return user.id if user else None


def _assign(record, data, form_class):
    for name, value in data.items():
        if isinstance(getattr(form_class, name, None), UnboundField):
            setattr(record, name, None if value == '' else value)


def _log(resource, action, record):
    if not resource.activity:
        return
    kwargs = {'car': record} if resource.activity == 'car' else {}
    activity_service.log_activity(f"{resource.activity}_{action}", user_id=_current_user_id(), **kwargs)


def _commit_or_error(error_key='error_saving'):
    """Commit the session; unique violations map to their message key"""
    try:
        db.session.commit()
        return None
    except IntegrityError as e:
        db.session.rollback()
        if is_unique_violation(e):
            return unique_violation_message_key(e)
        logger.error(f"Integrity error: {str(e)}")
        return error_key


def _get_resource(name):
    resource = RESOURCES.get(name)
    if resource is None:
        return None, api_error('not_found')
    return resource, None


# Reference tables

@admin_bp.route('/<resource_name>', methods=['GET'])
@jwt_required()
@admin_required
def list_records(resource_name):
    resource, error = _get_resource(resource_name)
    if error:
        return error
    try:
        records = resource.model.query.all()
        return table_response(records, search_fields=resource.search_fields,
                              default_sort=resource.default_sort, filter_fields=resource.filter_fields)
    except Exception as e:
        logger.error(f"Error listing {resource_name}: {str(e)}")
        return api_error('error_loading_data')


@admin_bp.route('/<resource_name>/<int:record_id>', methods=['GET'])
@jwt_required()
@admin_required
def get_record(resource_name, record_id):
    resource, error = _get_resource(resource_name)
    if error:
        return error
    record = db.session.get(resource.model, record_id)
    if not record:
        return api_error('not_found')
    return api_success(item=record.to_dict())


@admin_bp.route('/<resource_name>', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_record(resource_name):
    resource, error = _get_resource(resource_name)
    if error:
        return error
    try:
        data, errors = validate_payload(resource.form)
        if errors:
            return api_error('validation_failed', errors=errors)

        record = resource.model()
        _assign(record, data, resource.form)
        db.session.add(record)
        error_key = _commit_or_error()
        if error_key:
            return api_error(error_key)
        _log(resource, 'added', record)
        db.session.commit()
        logger.info(f"{resource_name} {record.id} created")
        return api_success('created_successfully', 201, item=record.to_dict())

    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating {resource_name}: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/<resource_name>/<int:record_id>', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_record(resource_name, record_id):
    resource, error = _get_resource(resource_name)
    if error:
        return error
    try:
        record = db.session.get(resource.model, record_id)
        if not record:
            return api_error('not_found')

        data, errors = validate_payload(resource.form, partial=True)
        if errors:
            return api_error('validation_failed', errors=errors)

        _assign(record, data, resource.form)
        error_key = _commit_or_error()
        if error_key:
            return api_error(error_key)
        _log(resource, 'updated', record)
        db.session.commit()
        return api_success('updated_successfully', item=record.to_dict())

    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating {resource_name} {record_id}: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/<resource_name>/<int:record_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_record(resource_name, record_id):
    resource, error = _get_resource(resource_name)
    if error:
        return error
    try:
        record = db.session.get(resource.model, record_id)
        if not record:
            return api_error('not_found')

        _log(resource, 'deleted', record)
        db.session.delete(record)
        error_key = _commit_or_error('error_deleting')
        if error_key:
            return api_error(error_key)
        logger.info(f"{resource_name} {record_id} deleted")
        return api_success('deleted_successfully')

    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting {resource_name} {record_id}: {str(e)}")
        return api_error('error_deleting')


@admin_bp.route('/education-programs/<int:program_id>/image', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def upload_education_program_image(program_id):
    program = db.session.get(EducationProgram, program_id)
    if not program:
        return api_error('not_found')
    file = request.files.get('file')
    if not file:
        return api_error('invalid_request')

    success, path, error = file_service.save_uploaded_file(
        file, file_service.record_folder('education_programs', program_id), prefix='image')
    if not success:
        return api_error('invalid_request', message=error)
    if program.image_path and program.image_path != path:
        file_service.delete_file(program.image_path)
    program.image_path = path
    db.session.commit()
    return api_success('picture_uploaded', url=file_service.get_public_url(path))


# Customers

@admin_bp.route('/customers/<int:customer_id>/transactions', methods=['GET'])
@jwt_required()
@admin_required
def customer_transactions(customer_id):
    summary = balance_service.customer_balance_summary(customer_id)
    if summary is None:
        return api_error('not_found')
    transactions = balance_service.get_customer_transactions(customer_id)
    return table_response(transactions, search_fields=('type', 'description'), default_sort='created_at',
                          default_direction='desc', filter_fields=('type',), summary=summary)


@admin_bp.route('/customers/<int:customer_id>/recalculate-balance', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def recalculate_customer_balance(customer_id):
    success, balance, error = TransactionHelper.execute_with_rollback(
        balance_service.recalculate_customer_balance, customer_id)
    if not success:
        logger.error(f"Error recalculating balance of customer {customer_id}: {error}")
        return api_error('error_saving')
    if balance is None:
        return api_error('not_found')
    return api_success('saved_successfully', balance=balance)


@admin_bp.route('/car-providers', methods=['GET'])
@jwt_required()
@admin_required
def list_car_providers():
    return table_response(CarProvider.query.all(), search_fields=('name', 'phone', 'identity_number'),
                          default_sort='name')


# Deals

@admin_bp.route('/deals', methods=['GET'])
@jwt_required()
@admin_required
def list_deals():
    try:
        return table_response(deal_service.list_deals(),
                              search_fields=('title', 'customer.name', 'car.car_number', 'notes'),
                              default_sort='created_at', default_direction='desc',
                              filter_fields=('deal_type', 'status', 'customer_id'))
    except Exception as e:
        logger.error(f"Error listing deals: {str(e)}")
        return api_error('error_loading_data')


@admin_bp.route('/deals/<int:deal_id>', methods=['GET'])
@jwt_required()
@admin_required
def get_deal(deal_id):
    deal = db.session.get(Deal, deal_id)
    if not deal:
        return api_error('not_found')
    item = deal.to_dict()
    item['bills'] = [bill.to_dict() for bill in deal.bills.all()]
    return api_success(item=item)


@admin_bp.route('/deals', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_deal():
    try:
        data, errors = validate_payload(DealForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, deal = deal_service.create_deal(data)
        if not success:
            return api_error(error)
        return api_success('deal_created', 201, item=deal.to_dict())
    except Exception as e:
        logger.error(f"Error creating deal: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/deals/<int:deal_id>', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_deal(deal_id):
    try:
        data, errors = validate_payload(DealForm, partial=True)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, deal = deal_service.update_deal(deal_id, data)
        if not success:
            return api_error(error)
        return api_success('updated_successfully', item=deal.to_dict())
    except Exception as e:
        logger.error(f"Error updating deal {deal_id}: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/deals/<int:deal_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_deal(deal_id):
    try:
        success, error = deal_service.delete_deal(deal_id)
        if not success:
            return api_error(error)
        return api_success('deleted_successfully')
    except Exception as e:
        logger.error(f"Error deleting deal {deal_id}: {str(e)}")
        return api_error('error_deleting')


# Bills

@admin_bp.route('/bills', methods=['GET'])
@jwt_required()
@admin_required
def list_bills():
    try:
        bills = bill_service.list_bills({name: request.args.get(name)
                                         for name in ('deal_id', 'booking_id', 'customer_id')})
        return table_response(bills, search_fields=('bill_number', 'customer_name', 'description'),
                              default_sort='created_at', default_direction='desc',
                              filter_fields=('bill_type', 'status', 'bill_direction'))
    except ValueError:
        return api_error('invalid_request')
    except Exception as e:
        logger.error(f"Error listing bills: {str(e)}")
        return api_error('error_loading_data')


@admin_bp.route('/bills/<int:bill_id>', methods=['GET'])
@jwt_required()
@admin_required
def get_bill(bill_id):
    bill = db.session.get(Bill, bill_id)
    if not bill:
        return api_error('not_found')
    item = bill.to_dict()
    item['paid_amount'] = balance_service.calculate_total_payment_amount(bill)
    item['payment_description'] = balance_service.get_payment_description(bill)
    return api_success(item=item)


@admin_bp.route('/bills', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_bill():
    """Create a bill; the JSON body carries the bill fields and a 'payments' list"""
    try:
        data, errors = validate_payload(BillForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        payments = data.pop('payments', None) or []
        if not isinstance(payments, list):
            return api_error('invalid_request')
        success, error, bill = bill_service.create_bill(data, payments, created_by=_current_user_id())
        if not success:
            return api_error(error)
        return api_success('bill_created', 201, item=bill.to_dict())
    except Exception as e:
        logger.error(f"Error creating bill: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/bills/<int:bill_id>/status', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_bill_status(bill_id):
    try:
        data, errors = validate_payload(BillStatusForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error = bill_service.update_bill_status(bill_id, data['status'])
        if not success:
            return api_error(error)
        return api_success('updated_successfully')
    except Exception as e:
        logger.error(f"Error updating bill {bill_id}: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/bills/<int:bill_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_bill(bill_id):
    try:
        success, error = bill_service.delete_bill(bill_id)
        if not success:
            return api_error(error)
        return api_success('deleted_successfully')
    except Exception as e:
        logger.error(f"Error deleting bill {bill_id}: {str(e)}")
        return api_error('error_deleting')


# Trip plans

@admin_bp.route('/trip-plans', methods=['GET'])
@jwt_required()
@admin_required
def list_trip_plans():
    return table_response(trip_plan_service.list_trip_plans(), serializer=lambda plan: plan,
                          search_fields=('name', 'school_name', 'destination_name', 'notes'),
                          default_sort='created_at', default_direction='desc',
                          filter_fields=('status', 'school_id', 'destination_id'))


@admin_bp.route('/trip-plans/<int:plan_id>', methods=['GET'])
@jwt_required()
@admin_required
def get_trip_plan(plan_id):
    plan = db.session.get(TripPlan, plan_id)
    if not plan:
        return api_error('not_found')
    return api_success(item=plan.to_dict())


@admin_bp.route('/trip-plans', methods=['POST'])
@jwt_required()
@admin_required
@csrf.exempt
def create_trip_plan():
    try:
        data, errors = validate_payload(TripPlanForm)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, plan = trip_plan_service.create_trip_plan(data, created_by=_current_user_id())
        if not success:
            return api_error(error)
        return api_success('trip_plan_created', 201, item=plan.to_dict())
    except Exception as e:
        logger.error(f"Error creating trip plan: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/trip-plans/<int:plan_id>', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_trip_plan(plan_id):
    try:
        data, errors = validate_payload(TripPlanForm, partial=True)
        if errors:
            return api_error('validation_failed', errors=errors)
        success, error, plan = trip_plan_service.update_trip_plan(plan_id, data)
        if not success:
            return api_error(error)
        return api_success('updated_successfully', item=plan.to_dict())
    except Exception as e:
        logger.error(f"Error updating trip plan {plan_id}: {str(e)}")
        return api_error('error_saving')


@admin_bp.route('/trip-plans/<int:plan_id>', methods=['DELETE'])
@jwt_required()
@admin_required
@csrf.exempt
def delete_trip_plan(plan_id):
    success, error = trip_plan_service.delete_trip_plan(plan_id)
    if not success:
        return api_error(error)
    return api_success('deleted_successfully')


# Logs

@admin_bp.route('/logs', methods=['GET'])
@jwt_required()
@admin_required
def list_logs():
    try:
        logs = activity_service.list_logs(request.args.get('type'))
        return table_response(logs, search_fields=('type', 'deal.title', 'car.car_number', 'provider.name'),
                              default_sort='created_at', default_direction='desc')
    except Exception as e:
        logger.error(f"Error listing logs: {str(e)}")
        return api_error('error_loading_data')


# Balances and dashboard

@admin_bp.route('/schools/<int:school_id>/balance', methods=['GET'])
@jwt_required()
@admin_required
def school_balance(school_id):
    balance = provider_balance_service.calculate_school_balance(school_id)
    if balance is None:
        return api_error('not_found')
    return api_success(balance=balance)


@admin_bp.route('/schools/balances', methods=['GET'])
@jwt_required()
@admin_required
def school_balances():
    schools = School.query.all()
    balances = provider_balance_service.calculate_multiple_school_balances([school.id for school in schools])
    rows = [dict(school.to_dict(), balance=balances.get(school.id, 0.0)) for school in schools]
    return table_response(rows, serializer=lambda row: row, search_fields=('name', 'code'),
                          default_sort='name', filter_fields=('status',))


@admin_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@admin_required
def dashboard():
    stats = reporting_service.get_dashboard_statistics()
    if 'error' in stats:
        return api_error('error_loading_data', 500, stats=stats)
    return api_success(stats=stats)


@admin_bp.route('/company-settings', methods=['GET'])
@jwt_required()
@admin_required
def get_company_settings():
    settings = CompanySettings.get_settings()
    db.session.commit()
    return api_success(settings=settings.to_dict())


@admin_bp.route('/company-settings', methods=['PUT'])
@jwt_required()
@admin_required
@csrf.exempt
def update_company_settings():
    try:
        data, errors = validate_payload(CompanySettingsForm, partial=True)
        if errors:
            return api_error('validation_failed', errors=errors)
        settings = CompanySettings.get_settings()
        _assign(settings, data, CompanySettingsForm)
        db.session.commit()
        return api_success('saved_successfully', settings=settings.to_dict())
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error saving company settings: {str(e)}")
        return api_error('error_saving')
