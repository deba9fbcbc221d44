from flask import request
from werkzeug.datastructures import MultiDict
from flask_wtf import FlaskForm
from wtforms import (StringField, PasswordField, BooleanField, SelectField, FloatField, IntegerField,
                     DateField, TextAreaField)
from wtforms.validators import DataRequired, InputRequired, Email, Length, Optional, NumberRange, ValidationError
from models import UserRole, UserStatus, DEAL_TYPES, BILL_TYPES, BILL_STATUSES, SERVICE_PROVIDER_MODELS

LANGUAGE_CHOICES = [('he', 'Hebrew'), ('ar', 'Arabic'), ('en', 'English')]
ROLE_CHOICES = [(role.value, role.value.replace('_', ' ').title()) for role in UserRole]
USER_STATUS_CHOICES = [(status.value, status.value.title()) for status in UserStatus]
ACTIVE_STATUS_CHOICES = [('active', 'Active'), ('inactive', 'Inactive')]


class ChoiceField(SelectField):
    """Select whose empty value is left to the Optional/DataRequired validators"""

    def pre_validate(self, form):
        if self.data in (None, ''):
            return
        super().pre_validate(form)


class ApiForm(FlaskForm):
    """JSON request form; API routes authenticate with bearer tokens instead of CSRF tokens"""

    class Meta:
        csrf = False


def _formdata(payload):
    # JSON numbers become strings so text validators can measure them; nulls count as missing
    values = {}
    for key, value in payload.items():
        if value is None or isinstance(value, (list, dict)):
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        values[key] = value
    return MultiDict(values)


def validate_payload(form_class, partial=False):
    """
    Validate the JSON body of the current request.

    With partial=True only the fields present in the body are checked, so
    PUT requests can send just the changed fields.

    Returns:
        tuple: (data: dict, errors: dict) where data is the body with the
        declared fields replaced by their coerced values
    """
    payload = request.get_json(silent=True) or {}
    form = form_class(formdata=_formdata(payload))
    form.validate()
    errors = {name: messages for name, messages in form.errors.items()
              if not partial or name in payload}
    data = dict(payload)
    for name, field in form._fields.items():
        if name in payload:
            data[name] = field.data
    return data, errors


class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired()])


class UserForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])
    full_name = StringField('Full Name', validators=[Optional(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    country = StringField('Country', validators=[Optional()])
    address = StringField('Address', validators=[Optional()])
    language = ChoiceField('Language', choices=LANGUAGE_CHOICES, validators=[Optional()])
    role = ChoiceField('Role', choices=ROLE_CHOICES, validators=[Optional()])
    status = ChoiceField('Status', choices=USER_STATUS_CHOICES, validators=[Optional()])


class InviteUserForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    full_name = StringField('Full Name', validators=[Optional(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    role = ChoiceField('Role', choices=ROLE_CHOICES, validators=[Optional()])


class AcceptInvitationForm(ApiForm):
    token = StringField('Invitation Token', validators=[DataRequired(), Length(max=512)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])


class ProviderForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    identity_number = StringField('Identity Number', validators=[DataRequired(), Length(max=30)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email()])
    address = StringField('Address', validators=[Optional()])
    hourly_rate = FloatField('Hourly Rate', validators=[Optional(), NumberRange(min=0)])
    daily_rate = FloatField('Daily Rate', validators=[Optional(), NumberRange(min=0)])
    regional_rate = FloatField('Regional Rate', validators=[Optional(), NumberRange(min=0)])
    overnight_rate = FloatField('Overnight Rate', validators=[Optional(), NumberRange(min=0)])
    price = FloatField('Price', validators=[Optional(), NumberRange(min=0)])
    status = ChoiceField('Status', choices=ACTIVE_STATUS_CHOICES, validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])
    user_email = StringField('Login Email', validators=[Optional(), Email()])
    user_password = PasswordField('Login Password', validators=[Optional(), Length(min=6)])


class CustomerForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    id_number = StringField('ID Number', validators=[Optional(), Length(max=20)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email()])
    car_number = StringField('Car Number', validators=[Optional(), Length(max=20)])
    country = StringField('Country', validators=[Optional()])
    age = IntegerField('Age', validators=[Optional(), NumberRange(min=0, max=150)])
    customer_type = ChoiceField('Customer Type', choices=[('new', 'New'), ('existing', 'Existing')],
                                validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])


class CarForm(ApiForm):
    title = StringField('Title', validators=[Optional(), Length(max=200)])
    brand = StringField('Brand', validators=[DataRequired(), Length(max=60)])
    model = StringField('Model', validators=[Optional(), Length(max=60)])
    year = IntegerField('Year', validators=[Optional(), NumberRange(min=1900, max=2100)])
    car_number = StringField('Car Number', validators=[Optional(), Length(max=20)])
    color = StringField('Color', validators=[Optional()])
    kilometers = IntegerField('Kilometers', validators=[Optional(), NumberRange(min=0)])
    buy_price = FloatField('Buy Price', validators=[Optional(), NumberRange(min=0)])
    sale_price = FloatField('Sale Price', validators=[Optional(), NumberRange(min=0)])
    status = ChoiceField('Status', choices=[('available', 'Available'), ('sold', 'Sold'), ('reserved', 'Reserved')],
                         validators=[Optional()])
    provider_id = IntegerField('Supplier', validators=[Optional()])


class DealForm(ApiForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    deal_type = ChoiceField('Deal Type', choices=[(value, value) for value in DEAL_TYPES],
                            validators=[DataRequired()])
    status = ChoiceField('Status', choices=[('active', 'Active'), ('completed', 'Completed'),
                                            ('cancelled', 'Cancelled')], validators=[Optional()])
    deal_date = DateField('Deal Date', validators=[Optional()])
    customer_id = IntegerField('Customer', validators=[Optional()])
    seller_id = IntegerField('Seller', validators=[Optional()])
    buyer_id = IntegerField('Buyer', validators=[Optional()])
    car_id = IntegerField('Car', validators=[Optional()])
    amount = FloatField('Amount', validators=[Optional(), NumberRange(min=0)])
    selling_price = FloatField('Selling Price', validators=[Optional(), NumberRange(min=0)])
    loss_amount = FloatField('Loss Amount', validators=[Optional()])
    commission = FloatField('Commission', validators=[Optional()])
    customer_car_eval_value = FloatField('Customer Car Value', validators=[Optional(), NumberRange(min=0)])
    notes = TextAreaField('Notes', validators=[Optional()])


class BillForm(ApiForm):
    bill_type = ChoiceField('Bill Type', choices=[(value, value) for value in BILL_TYPES] + [('receipt', 'receipt')],
                            validators=[DataRequired()])
    bill_number = StringField('Bill Number', validators=[Optional(), Length(max=30)])
    bill_direction = ChoiceField('Direction', choices=[('positive', 'Positive'), ('negative', 'Negative')],
                                 validators=[Optional()])
    status = ChoiceField('Status', choices=[(value, value.title()) for value in BILL_STATUSES], validators=[Optional()])
    parent_bill_id = IntegerField('Parent Bill', validators=[Optional()])
    deal_id = IntegerField('Deal', validators=[Optional()])
    booking_id = IntegerField('Booking', validators=[Optional()])
    customer_id = IntegerField('Customer', validators=[Optional()])
    customer_name = StringField('Customer Name', validators=[Optional(), Length(max=120)])
    customer_phone = StringField('Customer Phone', validators=[Optional(), Length(max=20)])
    customer_email = StringField('Customer Email', validators=[Optional(), Email()])
    description = TextAreaField('Description', validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])
    issue_date = DateField('Issue Date', validators=[Optional()])
    due_date = DateField('Due Date', validators=[Optional()])
    quantity = IntegerField('Quantity', validators=[Optional(), NumberRange(min=1)])
    unit_price = FloatField('Unit Price', validators=[Optional(), NumberRange(min=0)])
    tax_rate = FloatField('Tax Rate', validators=[Optional(), NumberRange(min=0, max=100)])


class BillStatusForm(ApiForm):
    status = ChoiceField('Status', choices=[(value, value.title()) for value in BILL_STATUSES],
                         validators=[DataRequired()])


class SchoolForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    code = StringField('Code', validators=[Optional(), Length(max=30)])
    type = StringField('Type', validators=[Optional()])
    director_name = StringField('Director', validators=[Optional()])
    address = StringField('Address', validators=[Optional()])
    email = StringField('Email', validators=[Optional(), Email()])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    staff_count = IntegerField('Staff', validators=[Optional(), NumberRange(min=0)])
    student_count = IntegerField('Students', validators=[Optional(), NumberRange(min=0)])
    class_count = IntegerField('Classes', validators=[Optional(), NumberRange(min=0)])
    status = ChoiceField('Status', choices=ACTIVE_STATUS_CHOICES, validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])


class DestinationForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    address = StringField('Address', validators=[Optional()])
    zone = StringField('Zone', validators=[Optional()])
    description = TextAreaField('Description', validators=[Optional()])
    student_price = FloatField('Student Price', validators=[Optional(), NumberRange(min=0)])
    crew_price = FloatField('Crew Price', validators=[Optional(), NumberRange(min=0)])
    status = ChoiceField('Status', choices=ACTIVE_STATUS_CHOICES, validators=[Optional()])


class EducationProgramForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional()])
    price = FloatField('Price', validators=[Optional(), NumberRange(min=0)])
    status = ChoiceField('Status', choices=ACTIVE_STATUS_CHOICES, validators=[Optional()])


class LicenseForm(ApiForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=120)])
    description = TextAreaField('Description', validators=[Optional()])
    price = FloatField('Price', validators=[Optional(), NumberRange(min=0)])
    shops = IntegerField('Shops', validators=[Optional(), NumberRange(min=0)])
    products = IntegerField('Products', validators=[Optional(), NumberRange(min=0)])


class SubscriptionForm(ApiForm):
    license_id = IntegerField('License', validators=[InputRequired()])
    user_id = IntegerField('User', validators=[InputRequired()])
    status = ChoiceField('Status', choices=[('active', 'Active'), ('inactive', 'Inactive'),
                                            ('cancelled', 'Cancelled')], validators=[Optional()])


class RatingForm(ApiForm):
    booking_id = IntegerField('Booking', validators=[InputRequired()])
    service_type = StringField('Service Type', validators=[DataRequired()])
    service_id = IntegerField('Service', validators=[InputRequired()])
    rating = IntegerField('Rating', validators=[InputRequired(), NumberRange(min=1, max=5)])
    comment = TextAreaField('Comment', validators=[Optional()])
    is_anonymous = BooleanField('Anonymous')


class CompanySettingsForm(ApiForm):
    name = StringField('Company Name', validators=[DataRequired(), Length(max=200)])
    tax_number = StringField('Tax Number', validators=[Optional(), Length(max=50)])
    address = StringField('Address', validators=[Optional()])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email()])


class TripPlanForm(ApiForm):
    name = StringField('Name', validators=[Optional(), Length(max=200)])
    school_id = IntegerField('School', validators=[Optional()])
    destination_id = IntegerField('Destination', validators=[Optional()])
    trip_date = DateField('Trip Date', validators=[Optional()])
    students_count = IntegerField('Students', validators=[Optional(), NumberRange(min=0)])
    crew_count = IntegerField('Crew', validators=[Optional(), NumberRange(min=0)])
    notes = TextAreaField('Notes', validators=[Optional()])


class BookingForm(TripPlanForm):
    trip_plan_id = IntegerField('Trip Plan', validators=[Optional()])
    payment_method = StringField('Payment Method', validators=[Optional(), Length(max=20)])


class BookingStatusForm(ApiForm):
    status = ChoiceField('Status', choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'),
                                            ('completed', 'Completed'), ('cancelled', 'Cancelled')],
                         validators=[DataRequired()])
    payment_status = ChoiceField('Payment Status', choices=[('pending', 'Pending'), ('partial', 'Partial'),
                                                            ('paid', 'Paid'), ('refunded', 'Refunded')],
                                 validators=[Optional()])


class BookingResponseForm(ApiForm):
    action = StringField('Action', validators=[DataRequired()])
    reason = TextAreaField('Reason', validators=[Optional()])


class PayoutForm(ApiForm):
    service_type = ChoiceField('Service Type', choices=[(key, key) for key in SERVICE_PROVIDER_MODELS],
                               validators=[DataRequired()])
    service_id = IntegerField('Service Provider', validators=[InputRequired()])
    amount = FloatField('Amount', validators=[InputRequired()])
    payment_method = ChoiceField('Payment Method', choices=[('cash', 'Cash'), ('bank_transfer', 'Bank Transfer'),
                                                            ('check', 'Check'), ('credit_card', 'Credit Card')],
                                 validators=[Optional()])
    payment_date = DateField('Payment Date', validators=[Optional()])
    reference_number = StringField('Reference', validators=[Optional(), Length(max=60)])
    description = TextAreaField('Description', validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])

    def validate_amount(self, field):
        if field.data is not None and field.data <= 0:
            raise ValidationError('Amount must be greater than zero')
