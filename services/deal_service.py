"""
Deal Service

Car deals and their effect on customer balances: a new deal debits the
customer by its selling price (exchange deals also credit the trade-in
car), deleting a deal reverses those entries along with its bills.
"""

from typing import Optional, Dict, Any, Tuple, List
import logging
from datetime import datetime
from models import db, Deal, Car, Customer, DEAL_TYPES
from .transaction_helper import TransactionHelper
from .balance_service import BalanceService
from .activity_service import ActivityService
from .bill_service import BillService
from .file_service import FileService

logger = logging.getLogger(__name__)

DEAL_STATUSES = ('active', 'completed', 'cancelled')

EDITABLE_FIELDS = (
    'title', 'deal_type', 'status', 'customer_id', 'seller_id', 'buyer_id', 'car_id',
    'amount', 'selling_price', 'loss_amount', 'commission', 'customer_car_eval_value',
    'customer_car_brand', 'customer_car_model', 'customer_car_year', 'customer_car_number',
    'notes',
)
NUMERIC_FIELDS = ('amount', 'selling_price', 'loss_amount', 'commission', 'customer_car_eval_value')


def _customer_name(deal: Deal) -> str:
    for customer in (deal.customer, deal.seller, deal.buyer):
        if customer:
            return customer.name
    return ''


class DealService:
    """Service class for deal management"""

    def __init__(self):
        self.balance_service = BalanceService()
        self.activity_service = ActivityService()
        self.bill_service = BillService()
        self.file_service = FileService()

    def validate_deal_data(self, data: Dict[str, Any], partial: bool = False) -> Optional[str]:
        if not partial and not (data.get('title') or '').strip():
            return 'validation_failed'
        if 'deal_type' in data or not partial:
            if (data.get('deal_type') or 'normal') not in DEAL_TYPES:
                return 'invalid_deal_type'
        if data.get('status') and data['status'] not in DEAL_STATUSES:
            return 'validation_failed'
        for field in NUMERIC_FIELDS:
            value = data.get(field)
            if value in (None, ''):
                continue
            try:
                if float(value) < 0:
                    return 'invalid_amount'
            except (TypeError, ValueError):
                return 'invalid_amount'
        for field in ('customer_id', 'seller_id', 'buyer_id'):
            if data.get(field) and not db.session.get(Customer, data[field]):
                return 'not_found'
        if data.get('car_id') and not db.session.get(Car, data['car_id']):
            return 'not_found'
        return None

    def _assign(self, deal: Deal, data: Dict[str, Any]) -> None:
        for field in EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field in NUMERIC_FIELDS:
                value = float(value or 0)
            elif value == '':
                value = None
            setattr(deal, field, value)
        if data.get('deal_date'):
            deal.deal_date = datetime.strptime(str(data['deal_date'])[:10], '%Y-%m-%d').date()

    def _apply_created_balance(self, deal: Deal) -> None:
        customer_id = self.balance_service.get_customer_id_from_deal(deal)
        if not customer_id:
            logger.info(f"Deal {deal.id} has no customer, balance unchanged")
            return
        self.balance_service.handle_deal_created(deal.id, customer_id, deal.selling_price, deal.title)
        if deal.deal_type == 'exchange':
            self.balance_service.handle_exchange_car_credit(
                deal.id, customer_id, deal.customer_car_eval_value, _customer_name(deal))

    def _apply_deleted_balance(self, deal: Deal) -> None:
        customer_id = self.balance_service.get_customer_id_from_deal(deal)
        if not customer_id:
            return
        self.balance_service.handle_deal_deleted(deal.id, customer_id, deal.selling_price, deal.title)
        if deal.deal_type == 'exchange' and (deal.customer_car_eval_value or 0) > 0:
            self.balance_service.update_customer_balance(
                customer_id, -deal.customer_car_eval_value, 'deal_deleted', deal.id,
                f"Reversed credit for customer car in exchange deal: {_customer_name(deal)}")

    @TransactionHelper.with_transaction
    def create_deal(self, data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[Deal]]:
        """
        Create a deal and debit the customer.

        Returns:
            tuple: (success: bool, error_message: str, deal: Deal)
        """
        error = self.validate_deal_data(data)
        if error:
            return False, error, None

        deal = Deal(deal_type=data.get('deal_type') or 'normal', status=data.get('status') or 'active')
        self._assign(deal, data)
        db.session.add(deal)
        db.session.flush()

        if deal.car and deal.deal_type not in ('intermediary', 'financing_assistance_intermediary'):
            deal.car.status = 'sold'

        self._apply_created_balance(deal)
        self.activity_service.log_activity('deal_created', deal=deal)
        logger.info(f"Deal {deal.id} '{deal.title}' created")
        return True, None, deal

    @TransactionHelper.with_transaction
    def update_deal(self, deal_id: int, data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[Deal]]:
        """
        Update a deal. A changed price or customer re-posts the balance
        entries: the old ones are reversed and the new ones written.
        """
        deal = db.session.get(Deal, deal_id)
        if not deal:
            return False, 'not_found', None

        error = self.validate_deal_data(data, partial=True)
        if error:
            return False, error, None

        balance_fields = ('selling_price', 'customer_id', 'seller_id', 'buyer_id',
                          'deal_type', 'customer_car_eval_value')
        before = {field: getattr(deal, field) for field in balance_fields}
        after = dict(before)
        for field in balance_fields:
            if field in data:
                after[field] = float(data[field] or 0) if field in NUMERIC_FIELDS else (data[field] or None)

        if before != after:
            self._apply_deleted_balance(deal)
            self._assign(deal, data)
            db.session.flush()
            db.session.expire(deal, ['customer', 'seller', 'buyer'])
            self._apply_created_balance(deal)
        else:
            self._assign(deal, data)

        self.activity_service.log_activity('deal_updated', deal=deal)
        return True, None, deal

    @TransactionHelper.with_transaction
    def delete_deal(self, deal_id: int) -> Tuple[bool, Optional[str]]:
        """
        Delete a deal with its bills and reverse its balance entries.

        The deal's storage folder is removed afterwards; a failure there is
        only logged.
        """
        deal = db.session.get(Deal, deal_id)
        if not deal:
            return False, 'not_found'

        self.activity_service.log_activity('deal_deleted', deal=deal)
        for bill in deal.bills.all():
            self.bill_service.reverse_bill(bill)
            db.session.delete(bill)
        self._apply_deleted_balance(deal)
        if deal.car and deal.car.status == 'sold':
            deal.car.status = 'available'
        db.session.delete(deal)

        success, error = self.file_service.delete_folder(self.file_service.record_folder('deals', deal_id))
        if not success:
            logger.warning(f"Could not delete files for deal {deal_id}: {error}")
        return True, None

    def list_deals(self) -> List[Deal]:
        return Deal.query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()
