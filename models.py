from datetime import datetime, date
from app import db
from flask_login import UserMixin
from sqlalchemy import Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import declared_attr
from werkzeug.security import generate_password_hash, check_password_hash
from enum import Enum
import uuid
from timezone_utils import get_local_time_naive

# Enums for better data integrity
class UserRole(Enum):
    ADMIN = 'admin'
    TRIP_PLANNER = 'trip_planner'
    CUSTOMER = 'customer'
    GUIDE = 'guide'
    PARAMEDIC = 'paramedic'
    SECURITY_COMPANY = 'security_company'
    ENTERTAINMENT_COMPANY = 'entertainment_company'
    TRAVEL_COMPANY = 'travel_company'
    SCHOOL = 'school'

class UserStatus(Enum):
    ACTIVE = 'active'
    PENDING = 'pending'
    SUSPENDED = 'suspended'


class BookingStatus(Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

class AcceptanceStatus(Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

class PayoutType(Enum):
    BOOKING = 'booking'
    PAYMENT = 'payment'

class PayoutStatus(Enum):
    PENDING = 'pending'
    PAID = 'paid'
    CANCELLED = 'cancelled'


# Plain string enumerations enforced with CHECK constraints
DEAL_TYPES = (
    'normal', 'exchange', 'intermediary', 'financing_assistance_intermediary',
    'company_commission', 'new_used_sale', 'new_used_sale_tax_inclusive',
    'new_sale', 'used_sale',
)
BILL_TYPES = ('general', 'receipt_only', 'tax_invoice', 'tax_invoice_receipt')
BILL_STATUSES = ('draft', 'issued', 'paid', 'complete', 'incomplete', 'cancelled')
PAYMENT_TYPES = ('cash', 'visa', 'bank_transfer', 'check')
TRANSACTION_TYPES = ('deal_created', 'deal_deleted', 'receipt_created', 'receipt_deleted')
ACTIVITY_TYPES = (
    'car_added', 'car_updated', 'car_deleted',
    'deal_created', 'deal_updated', 'deal_deleted',
    'bill_created', 'bill_updated', 'bill_deleted',
    'customer_added', 'customer_updated', 'customer_deleted',
    'provider_added', 'provider_updated', 'provider_deleted',
    'paramedic_added', 'paramedic_updated', 'paramedic_deleted',
    'guide_added', 'guide_updated', 'guide_deleted',
    'booking_created', 'booking_updated', 'booking_deleted',
)


def _quoted(values):
    return ', '.join(f"'{value}'" for value in values)


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


def _iso(value):
    return value.isoformat() if isinstance(value, (datetime, date)) else value


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.CUSTOMER, index=True)
    status = db.Column(db.Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE, index=True)

    full_name = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    country = db.Column(db.String(60))
    address = db.Column(db.String(255))
    language = db.Column(db.String(5), default='he')
    avatar_path = db.Column(db.String(255))

    last_login = db.Column(db.DateTime)
    invited_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role in (UserRole.ADMIN, UserRole.TRIP_PLANNER)

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'email': self.email,
            'full_name': self.full_name,
            'phone': self.phone,
            'country': self.country,
            'address': self.address,
            'role': _enum_value(self.role),
            'status': _enum_value(self.status),
            'language': self.language,
            'last_login': _iso(self.last_login),
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


class CompanySettings(db.Model):
    """Single-row table holding the company details printed on bills and contracts"""
    __tablename__ = 'company_settings'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, default='Car Dealership')
    tax_number = db.Column(db.String(50))
    address = db.Column(db.String(255))
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))
    logo_path = db.Column(db.String(255))
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    @classmethod
    def get_settings(cls):
        settings = cls.query.order_by(cls.id).first()
        if not settings:
            settings = cls(name='Car Dealership')
            db.session.add(settings)
            db.session.flush()
        return settings

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'tax_number': self.tax_number,
            'address': self.address,
            'phone': self.phone,
            'email': self.email,
            'logo_path': self.logo_path,
        }


class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(120), nullable=False, index=True)
    id_number = db.Column(db.String(20), unique=True)
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))
    car_number = db.Column(db.String(20))
    country = db.Column(db.String(60))
    age = db.Column(db.Integer)
    customer_type = db.Column(db.String(10), nullable=False, default='new')
    balance = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    transactions = db.relationship('CustomerTransaction', backref='customer', lazy='dynamic',
                                   cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint("customer_type IN ('new', 'existing')", name='ck_customer_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'name': self.name,
            'id_number': self.id_number,
            'phone': self.phone,
            'email': self.email,
            'car_number': self.car_number,
            'country': self.country,
            'age': self.age,
            'customer_type': self.customer_type,
            'balance': self.balance or 0.0,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Customer {self.name}>'


class CustomerTransaction(db.Model):
    """Ledger row written for every change to a customer's balance"""
    __tablename__ = 'customer_transactions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    balance_before = db.Column(db.Float, nullable=False)
    balance_after = db.Column(db.Float, nullable=False)
    reference_id = db.Column(db.String(36))
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    __table_args__ = (
        Index('idx_customer_transaction_created', 'customer_id', 'created_at'),
        CheckConstraint(f"type IN ({_quoted(TRANSACTION_TYPES)})", name='ck_customer_transaction_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'type': self.type,
            'amount': self.amount,
            'balance_before': self.balance_before,
            'balance_after': self.balance_after,
            'reference_id': self.reference_id,
            'description': self.description,
            'created_at': _iso(self.created_at),
        }


class CarProvider(db.Model):
    """Supplier a car was bought from"""
    __tablename__ = 'car_providers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(20))
    address = db.Column(db.String(255))
    identity_number = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'address': self.address,
            'identity_number': self.identity_number,
        }


class Car(db.Model):
    __tablename__ = 'cars'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200))
    brand = db.Column(db.String(60), nullable=False)
    model = db.Column(db.String(60))
    year = db.Column(db.Integer)
    car_number = db.Column(db.String(20), unique=True)
    color = db.Column(db.String(30))
    kilometers = db.Column(db.Integer, default=0)
    buy_price = db.Column(db.Float, default=0.0)
    sale_price = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(20), nullable=False, default='available')
    provider_id = db.Column(db.Integer, db.ForeignKey('car_providers.id'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    provider = db.relationship('CarProvider', backref='cars')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'brand': self.brand,
            'model': self.model,
            'year': self.year,
            'car_number': self.car_number,
            'color': self.color,
            'kilometers': self.kilometers,
            'buy_price': self.buy_price,
            'sale_price': self.sale_price,
            'status': self.status,
            'provider_id': self.provider_id,
            'provider_name': self.provider.name if self.provider else None,
        }


class Deal(db.Model):
    __tablename__ = 'deals'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(200), nullable=False)
    deal_type = db.Column(db.String(40), nullable=False, default='normal')
    status = db.Column(db.String(20), nullable=False, default='active')
    deal_date = db.Column(db.Date, default=lambda: get_local_time_naive().date())

    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    seller_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    buyer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    car_id = db.Column(db.Integer, db.ForeignKey('cars.id'))

    amount = db.Column(db.Float, default=0.0)
    selling_price = db.Column(db.Float, default=0.0)
    loss_amount = db.Column(db.Float, default=0.0)
    commission = db.Column(db.Float, default=0.0)

    # Trade-in details for exchange deals
    customer_car_eval_value = db.Column(db.Float, default=0.0)
    customer_car_brand = db.Column(db.String(60))
    customer_car_model = db.Column(db.String(60))
    customer_car_year = db.Column(db.Integer)
    customer_car_number = db.Column(db.String(20))

    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    customer = db.relationship('Customer', foreign_keys=[customer_id])
    seller = db.relationship('Customer', foreign_keys=[seller_id])
    buyer = db.relationship('Customer', foreign_keys=[buyer_id])
    car = db.relationship('Car', backref='deals')
    bills = db.relationship('Bill', backref='deal', lazy='dynamic')

    __table_args__ = (
        Index('idx_deal_type_status', 'deal_type', 'status'),
        CheckConstraint(f"deal_type IN ({_quoted(DEAL_TYPES)})", name='ck_deal_type'),
    )

    @property
    def is_intermediary(self):
        return self.deal_type in ('intermediary', 'financing_assistance_intermediary')

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'title': self.title,
            'deal_type': self.deal_type,
            'status': self.status,
            'deal_date': _iso(self.deal_date),
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'seller_id': self.seller_id,
            'buyer_id': self.buyer_id,
            'car_id': self.car_id,
            'car_title': self.car.title if self.car else None,
            'amount': self.amount,
            'selling_price': self.selling_price,
            'loss_amount': self.loss_amount,
            'commission': self.commission,
            'customer_car_eval_value': self.customer_car_eval_value,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Deal {self.title}>'


class Bill(db.Model):
    __tablename__ = 'bills'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    bill_number = db.Column(db.String(30), unique=True, nullable=False, index=True)
    bill_type = db.Column(db.String(30), nullable=False, default='general')
    bill_direction = db.Column(db.String(10), nullable=False, default='positive')
    status = db.Column(db.String(20), nullable=False, default='issued')
    issue_date = db.Column(db.Date, default=lambda: get_local_time_naive().date())
    due_date = db.Column(db.Date)

    deal_id = db.Column(db.Integer, db.ForeignKey('deals.id'))
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'))
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    customer_name = db.Column(db.String(120))
    customer_phone = db.Column(db.String(20))
    customer_email = db.Column(db.String(120))
    description = db.Column(db.Text)
    notes = db.Column(db.Text)
    parent_bill_id = db.Column(db.Integer, db.ForeignKey('bills.id', ondelete='SET NULL'))
    paid_date = db.Column(db.Date)

    # Single-method amounts carried by bills recorded before per-payment rows existed
    visa_amount = db.Column(db.Float, default=0.0)
    transfer_amount = db.Column(db.Float, default=0.0)
    check_amount = db.Column(db.Float, default=0.0)
    cash_amount = db.Column(db.Float, default=0.0)
    bank_amount = db.Column(db.Float, default=0.0)
    bill_amount = db.Column(db.Float, default=0.0)

    quantity = db.Column(db.Integer, default=1)
    unit_price = db.Column(db.Float, default=0.0)
    subtotal = db.Column(db.Float, default=0.0)
    tax_rate = db.Column(db.Float, default=0.0)
    tax_amount = db.Column(db.Float, default=0.0)
    total_amount = db.Column(db.Float, default=0.0)

    auto_generated = db.Column(db.Boolean, default=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    payments = db.relationship('BillPayment', backref='bill', cascade='all, delete-orphan',
                               order_by='BillPayment.id')
    booking = db.relationship('Booking', backref=db.backref('bills', lazy='dynamic'))
    customer = db.relationship('Customer')

    __table_args__ = (
        Index('idx_bill_type_issue_date', 'bill_type', 'issue_date'),
        CheckConstraint(f"bill_type IN ({_quoted(BILL_TYPES)})", name='ck_bill_type'),
        CheckConstraint("bill_direction IN ('positive', 'negative')", name='ck_bill_direction'),
    )

    def to_dict(self, include_payments=True):
        data = {
            'id': self.id,
            'uuid': self.uuid,
            'bill_number': self.bill_number,
            'bill_type': self.bill_type,
            'bill_direction': self.bill_direction,
            'status': self.status,
            'issue_date': _iso(self.issue_date),
            'due_date': _iso(self.due_date),
            'deal_id': self.deal_id,
            'booking_id': self.booking_id,
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_email': self.customer_email,
            'description': self.description,
            'notes': self.notes,
            'parent_bill_id': self.parent_bill_id,
            'paid_date': _iso(self.paid_date),
            'visa_amount': self.visa_amount,
            'transfer_amount': self.transfer_amount,
            'check_amount': self.check_amount,
            'cash_amount': self.cash_amount,
            'bank_amount': self.bank_amount,
            'bill_amount': self.bill_amount,
            'subtotal': self.subtotal,
            'tax_rate': self.tax_rate,
            'tax_amount': self.tax_amount,
            'total_amount': self.total_amount,
            'auto_generated': self.auto_generated,
            'created_at': _iso(self.created_at),
        }
        if include_payments:
            data['payments'] = [payment.to_dict() for payment in self.payments]
        return data

    def __repr__(self):
        return f'<Bill {self.bill_number}>'


class BillPayment(db.Model):
    __tablename__ = 'bill_payments'

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey('bills.id', ondelete='CASCADE'), nullable=False)
    payment_type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    payment_date = db.Column(db.Date, default=lambda: get_local_time_naive().date())

    visa_installments = db.Column(db.Integer)
    visa_card_type = db.Column(db.String(30))
    visa_last_four = db.Column(db.String(4))

    transfer_bank_name = db.Column(db.String(60))
    transfer_branch = db.Column(db.String(30))
    transfer_account_number = db.Column(db.String(30))
    transfer_number = db.Column(db.String(60))

    check_number = db.Column(db.String(30))
    check_bank_name = db.Column(db.String(60))
    check_branch = db.Column(db.String(30))
    check_account_number = db.Column(db.String(30))
    check_holder_name = db.Column(db.String(120))
    check_due_date = db.Column(db.Date)

    __table_args__ = (
        CheckConstraint(f"payment_type IN ({_quoted(PAYMENT_TYPES)})", name='ck_bill_payment_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'bill_id': self.bill_id,
            'payment_type': self.payment_type,
            'amount': self.amount,
            'payment_date': _iso(self.payment_date),
            'visa_installments': self.visa_installments,
            'visa_card_type': self.visa_card_type,
            'visa_last_four': self.visa_last_four,
            'transfer_bank_name': self.transfer_bank_name,
            'transfer_number': self.transfer_number,
            'check_number': self.check_number,
            'check_bank_name': self.check_bank_name,
            'check_holder_name': self.check_holder_name,
            'check_due_date': _iso(self.check_due_date),
        }


class ServiceProviderMixin:
    """Columns shared by every bookable service provider table"""

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(120), nullable=False)
    identity_number = db.Column(db.String(30), unique=True)
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))
    address = db.Column(db.String(255))

    hourly_rate = db.Column(db.Float, default=0.0)
    daily_rate = db.Column(db.Float, default=0.0)
    regional_rate = db.Column(db.Float, default=0.0)
    overnight_rate = db.Column(db.Float, default=0.0)
    price = db.Column(db.Float)
    pricing_data = db.Column(db.JSON)

    status = db.Column(db.String(20), nullable=False, default='active')
    notes = db.Column(db.Text)
    profile_picture_path = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    @declared_attr
    def user_id(cls):
        return db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))

    @declared_attr
    def user(cls):
        return db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'name': self.name,
            'identity_number': self.identity_number,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'hourly_rate': self.hourly_rate,
            'daily_rate': self.daily_rate,
            'regional_rate': self.regional_rate,
            'overnight_rate': self.overnight_rate,
            'price': self.price,
            'pricing_data': self.pricing_data,
            'status': self.status,
            'notes': self.notes,
            'profile_picture_path': self.profile_picture_path,
            'user_id': self.user_id,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}>'


class Guide(ServiceProviderMixin, db.Model):
    __tablename__ = 'guides'


class Paramedic(ServiceProviderMixin, db.Model):
    __tablename__ = 'paramedics'


class SecurityCompany(ServiceProviderMixin, db.Model):
    __tablename__ = 'security_companies'

    license_number = db.Column(db.String(50))
    license_types = db.Column(db.JSON)


class TravelCompany(ServiceProviderMixin, db.Model):
    __tablename__ = 'travel_companies'

    vehicle_count = db.Column(db.Integer, default=0)
    vehicle_availability = db.Column(db.String(20), default='available')
    services_offered = db.Column(db.Text)


class EntertainmentCompany(ServiceProviderMixin, db.Model):
    __tablename__ = 'external_entertainment_companies'

    description = db.Column(db.Text)
    sub_services = db.Column(db.JSON)


class School(db.Model):
    __tablename__ = 'schools'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(30), unique=True)
    type = db.Column(db.String(40))
    director_name = db.Column(db.String(120))
    address = db.Column(db.String(255))
    email = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    staff_count = db.Column(db.Integer, default=0)
    student_count = db.Column(db.Integer, default=0)
    class_count = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), nullable=False, default='active')
    notes = db.Column(db.Text)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'name': self.name,
            'code': self.code,
            'type': self.type,
            'director_name': self.director_name,
            'address': self.address,
            'email': self.email,
            'phone': self.phone,
            'staff_count': self.staff_count,
            'student_count': self.student_count,
            'class_count': self.class_count,
            'status': self.status,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


class Destination(db.Model):
    __tablename__ = 'destinations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    address = db.Column(db.String(255))
    zone = db.Column(db.String(60))
    description = db.Column(db.Text)
    student_price = db.Column(db.Float, default=0.0)
    crew_price = db.Column(db.Float, default=0.0)
    image_path = db.Column(db.String(255))
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'zone': self.zone,
            'description': self.description,
            'student_price': self.student_price,
            'crew_price': self.crew_price,
            'image_path': self.image_path,
            'status': self.status,
        }


class EducationProgram(db.Model):
    __tablename__ = 'education_programs'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Float, default=0.0)
    image_path = db.Column(db.String(255))
    sub_services = db.Column(db.JSON)
    status = db.Column(db.String(20), nullable=False, default='active')
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'image_path': self.image_path,
            'sub_services': self.sub_services or [],
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class TripPlan(db.Model):
    __tablename__ = 'trip_plans'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200))
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'))
    destination_id = db.Column(db.Integer, db.ForeignKey('destinations.id'))
    trip_date = db.Column(db.Date)
    students_count = db.Column(db.Integer, default=0)
    crew_count = db.Column(db.Integer, default=0)
    total_price = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(20), nullable=False, default='draft')
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    school = db.relationship('School')
    destination = db.relationship('Destination')
    services = db.relationship('TripPlanService', backref='trip_plan', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'name': self.name,
            'school_id': self.school_id,
            'school_name': self.school.name if self.school else None,
            'destination_id': self.destination_id,
            'destination_name': self.destination.name if self.destination else None,
            'trip_date': _iso(self.trip_date),
            'students_count': self.students_count,
            'crew_count': self.crew_count,
            'total_price': self.total_price,
            'status': self.status,
            'notes': self.notes,
            'services': [service.to_dict() for service in self.services],
            'created_at': _iso(self.created_at),
        }


class TripPlanService(db.Model):
    """Provider selected for a trip plan"""
    __tablename__ = 'trip_plan_services'

    id = db.Column(db.Integer, primary_key=True)
    trip_plan_id = db.Column(db.Integer, db.ForeignKey('trip_plans.id', ondelete='CASCADE'), nullable=False)
    service_type = db.Column(db.String(40), nullable=False)
    service_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, default=1)
    days = db.Column(db.Integer, default=1)
    rate_type = db.Column(db.String(20), default='daily')
    unit_price = db.Column(db.Float, default=0.0)
    sub_services = db.Column(db.JSON)
    line_total = db.Column(db.Float, default=0.0)

    def to_dict(self):
        return {
            'id': self.id,
            'service_type': self.service_type,
            'service_id': self.service_id,
            'quantity': self.quantity,
            'days': self.days,
            'rate_type': self.rate_type,
            'unit_price': self.unit_price,
            'sub_services': self.sub_services or [],
            'line_total': self.line_total,
        }


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    booking_reference = db.Column(db.String(30), unique=True, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'))
    destination_id = db.Column(db.Integer, db.ForeignKey('destinations.id'))
    trip_plan_id = db.Column(db.Integer, db.ForeignKey('trip_plans.id'))
    trip_date = db.Column(db.Date)
    students_count = db.Column(db.Integer, default=0)
    crew_count = db.Column(db.Integer, default=0)
    total_amount = db.Column(db.Float, default=0.0)
    payment_status = db.Column(db.String(20), nullable=False, default='pending')
    payment_method = db.Column(db.String(20))
    status = db.Column(db.Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    customer = db.relationship('User')
    school = db.relationship('School', backref='bookings')
    destination = db.relationship('Destination')
    services = db.relationship('BookingService', backref='booking', cascade='all, delete-orphan',
                               order_by='BookingService.id')

    __table_args__ = (
        Index('idx_booking_status_trip_date', 'status', 'trip_date'),
    )

    def to_dict(self, include_services=False):
        data = {
            'id': self.id,
            'uuid': self.uuid,
            'booking_reference': self.booking_reference,
            'customer_id': self.customer_id,
            'customer_name': self.customer.full_name if self.customer else None,
            'customer_email': self.customer.email if self.customer else None,
            'school_id': self.school_id,
            'school_name': self.school.name if self.school else None,
            'destination_id': self.destination_id,
            'destination_name': self.destination.name if self.destination else None,
            'trip_date': _iso(self.trip_date),
            'students_count': self.students_count,
            'crew_count': self.crew_count,
            'total_amount': self.total_amount,
            'payment_status': self.payment_status,
            'payment_method': self.payment_method,
            'status': _enum_value(self.status),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }
        if include_services:
            data['services'] = [service.to_dict() for service in self.services]
        return data

    def __repr__(self):
        return f'<Booking {self.booking_reference}>'


class BookingService(db.Model):
    __tablename__ = 'booking_services'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False)
    service_type = db.Column(db.String(40), nullable=False)
    service_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, default=1)
    days = db.Column(db.Integer, default=1)
    booked_price = db.Column(db.Float, default=0.0)
    rate_type = db.Column(db.String(20), default='daily')
    acceptance_status = db.Column(db.Enum(AcceptanceStatus), nullable=False, default=AcceptanceStatus.PENDING)
    accepted_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)
    responded_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    __table_args__ = (
        Index('idx_booking_service_provider', 'service_type', 'service_id'),
    )

    @property
    def line_total(self):
        return (self.booked_price or 0) * (self.quantity or 1) * (self.days or 1)

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'service_type': self.service_type,
            'service_id': self.service_id,
            'quantity': self.quantity,
            'days': self.days,
            'booked_price': self.booked_price,
            'rate_type': self.rate_type,
            'line_total': self.line_total,
            'acceptance_status': _enum_value(self.acceptance_status),
            'accepted_at': _iso(self.accepted_at),
            'rejected_at': _iso(self.rejected_at),
            'rejection_reason': self.rejection_reason,
        }


class Payout(db.Model):
    """Amount owed to (type booking) or paid to (type payment) a service provider"""
    __tablename__ = 'payouts'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    type = db.Column(db.Enum(PayoutType), nullable=False, default=PayoutType.PAYMENT)
    status = db.Column(db.Enum(PayoutStatus), nullable=False, default=PayoutStatus.PAID)
    service_type = db.Column(db.String(40), nullable=False)
    service_id = db.Column(db.Integer, nullable=False)
    service_provider_name = db.Column(db.String(120))
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    booking_service_id = db.Column(db.Integer, db.ForeignKey('booking_services.id', ondelete='SET NULL'))
    booking_record_id = db.Column(db.Integer, db.ForeignKey('payouts.id', ondelete='SET NULL'))

    amount = db.Column(db.Float, nullable=False, default=0.0)
    payment_method = db.Column(db.String(20))
    payment_date = db.Column(db.Date)
    reference_number = db.Column(db.String(60))
    bank_name = db.Column(db.String(60))
    account_number = db.Column(db.String(30))
    account_holder_name = db.Column(db.String(120))
    transaction_number = db.Column(db.String(60))
    check_number = db.Column(db.String(30))
    check_bank_name = db.Column(db.String(60))
    description = db.Column(db.Text)
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    creator = db.relationship('User', foreign_keys=[created_by])

    __table_args__ = (
        Index('idx_payout_provider', 'service_type', 'service_id'),
        CheckConstraint('amount >= 0', name='ck_payout_amount'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'uuid': self.uuid,
            'type': _enum_value(self.type),
            'status': _enum_value(self.status),
            'service_type': self.service_type,
            'service_id': self.service_id,
            'service_provider_name': self.service_provider_name,
            'booking_service_id': self.booking_service_id,
            'booking_record_id': self.booking_record_id,
            'amount': self.amount,
            'payment_method': self.payment_method,
            'payment_date': _iso(self.payment_date),
            'reference_number': self.reference_number,
            'bank_name': self.bank_name,
            'account_number': self.account_number,
            'account_holder_name': self.account_holder_name,
            'transaction_number': self.transaction_number,
            'check_number': self.check_number,
            'check_bank_name': self.check_bank_name,
            'description': self.description,
            'notes': self.notes,
            'created_by': self.created_by,
            'created_by_name': self.creator.full_name if self.creator else None,
            'created_at': _iso(self.created_at),
        }


class License(db.Model):
    __tablename__ = 'licenses'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Float, default=0.0)
    shops = db.Column(db.Integer, default=0)
    products = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'price': self.price,
            'shops': self.shops,
            'products': self.products,
            'created_at': _iso(self.created_at),
        }


class Subscription(db.Model):
    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    license_id = db.Column(db.Integer, db.ForeignKey('licenses.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    license = db.relationship('License', backref='subscriptions')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'license_id': self.license_id,
            'license_title': self.license.title if self.license else None,
            'user_id': self.user_id,
            'user_name': self.user.full_name if self.user else None,
            'user_email': self.user.email if self.user else None,
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class Rating(db.Model):
    __tablename__ = 'ratings'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    service_type = db.Column(db.String(40), nullable=False)
    service_id = db.Column(db.Integer, nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    is_anonymous = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)

    user = db.relationship('User')
    booking = db.relationship('Booking')

    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='ck_rating_range'),
        UniqueConstraint('booking_id', 'user_id', 'service_type', 'service_id', name='uq_rating_per_service'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'booking_reference': self.booking.booking_reference if self.booking else None,
            'user_id': None if self.is_anonymous else self.user_id,
            'user_name': None if self.is_anonymous or not self.user else self.user.full_name,
            'service_type': self.service_type,
            'service_id': self.service_id,
            'rating': self.rating,
            'comment': self.comment,
            'is_anonymous': self.is_anonymous,
            'created_at': _iso(self.created_at),
        }


class ActivityLog(db.Model):
    """Business activity feed shown on the logs page, with JSON snapshots of the affected rows"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(30), nullable=False, index=True)
    deal = db.Column(db.JSON)
    car = db.Column(db.JSON)
    bill = db.Column(db.JSON)
    provider = db.Column(db.JSON)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    ip_address = db.Column(db.String(45))
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(f"type IN ({_quoted(ACTIVITY_TYPES)})", name='ck_activity_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'deal': self.deal,
            'car': self.car,
            'bill': self.bill,
            'provider': self.provider,
            'user_id': self.user_id,
            'created_at': _iso(self.created_at),
        }


# Provider tables keyed by the service_type stored on booking services and payouts
SERVICE_PROVIDER_MODELS = {
    'guides': Guide,
    'paramedics': Paramedic,
    'security_companies': SecurityCompany,
    'external_entertainment_companies': EntertainmentCompany,
    'travel_companies': TravelCompany,
}

BOOKABLE_SERVICE_MODELS = dict(SERVICE_PROVIDER_MODELS, education_programs=EducationProgram)

# Login role given to the linked user of each provider type
SERVICE_TYPE_ROLES = {
    'guides': UserRole.GUIDE,
    'paramedics': UserRole.PARAMEDIC,
    'security_companies': UserRole.SECURITY_COMPANY,
    'external_entertainment_companies': UserRole.ENTERTAINMENT_COMPANY,
    'travel_companies': UserRole.TRAVEL_COMPANY,
}
