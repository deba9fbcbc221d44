"""
Balance Service

Customer balance ledger. Every balance change is written together with a
CustomerTransaction row holding the balance before and after it, so the
balance can be audited and rebuilt.

Sign convention: deals debit the customer (selling price), receipts credit
the customer (payment amount), negative bills (expenses/deductions) debit.
"""

from typing import Optional, List, Any, Dict
import logging
from models import db, Customer, CustomerTransaction, Deal, Bill

logger = logging.getLogger(__name__)

LEGACY_AMOUNT_FIELDS = (
    ('visa_amount', 'Visa'),
    ('transfer_amount', 'Transfer'),
    ('check_amount', 'Check'),
    ('cash_amount', 'Cash'),
    ('bank_amount', 'Bank'),
)


def _get(obj: Any, name: str, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _money(value: float) -> str:
    value = round(value, 2)
    return str(int(value)) if value == int(value) else f"{value:.2f}"


class BalanceService:
    """Service class for customer balance bookkeeping"""

    @staticmethod
    def update_customer_balance(customer_id: int, amount: float, transaction_type: str,
                                reference_id: Optional[Any] = None, description: str = '') -> bool:
        """
        Apply a signed amount to a customer's balance and journal it.

        The change is added to the session only; the caller commits. A failure
        to build the ledger row is logged without undoing the balance change.

        Args:
            customer_id: Customer to update
            amount: Signed change (negative debits the customer)
            transaction_type: deal_created, deal_deleted, receipt_created or receipt_deleted
            reference_id: Deal or bill the change belongs to
            description: Human readable description

        Returns:
            bool: True if the balance was updated
        """
        try:
            customer = db.session.get(Customer, customer_id)
            if not customer:
                logger.error(f"Error fetching customer balance: customer {customer_id} not found")
                return False

            balance_before = customer.balance or 0.0
            balance_after = balance_before + amount
            customer.balance = balance_after
        except Exception as e:
            logger.error(f"Error updating customer balance for {customer_id}: {str(e)}")
            return False

        try:
            db.session.add(CustomerTransaction(
                customer_id=customer_id,
                type=transaction_type,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                reference_id=str(reference_id) if reference_id is not None else None,
                description=description,
            ))
        except Exception as e:
            logger.error(f"Error logging customer transaction for {customer_id}: {str(e)}")

        logger.info(f"Customer {customer_id} balance {balance_before} -> {balance_after} ({transaction_type})")
        return True

    @staticmethod
    def handle_deal_created(deal_id: int, customer_id: int, selling_price: float, deal_title: str) -> bool:
        price = _to_float(selling_price)
        return BalanceService.update_customer_balance(
            customer_id, -price, 'deal_created', deal_id,
            f"Deal created: {deal_title} (₪{_money(price)})")

    @staticmethod
    def handle_deal_deleted(deal_id: int, customer_id: int, selling_price: float, deal_title: str) -> bool:
        price = _to_float(selling_price)
        return BalanceService.update_customer_balance(
            customer_id, price, 'deal_deleted', deal_id,
            f"Deal deleted: {deal_title} (₪{_money(price)})")

    @staticmethod
    def handle_exchange_car_credit(deal_id: int, customer_id: int, evaluation_amount: float,
                                   customer_name: str) -> bool:
        """Credit the trade-in car value of an exchange deal (no-op for zero or negative values)"""
        amount = _to_float(evaluation_amount)
        if amount <= 0:
            return True
        return BalanceService.update_customer_balance(
            customer_id, amount, 'deal_created', deal_id,
            f"Credit for customer car in exchange deal: {customer_name} (₪{_money(amount)})")

    @staticmethod
    def calculate_total_payment_amount(bill: Any, payments: Optional[List[Any]] = None) -> float:
        """
        Total paid on a bill, signed by the bill direction.

        Per-payment rows win when present; otherwise the single-method
        amount columns (and bill_amount for general bills) are summed.
        """
        if payments:
            total = sum(_to_float(_get(payment, 'amount')) for payment in payments)
        else:
            total = sum(_to_float(_get(bill, name)) for name, _ in LEGACY_AMOUNT_FIELDS)
            total += _to_float(_get(bill, 'bill_amount'))

        if _get(bill, 'bill_direction') == 'negative':
            return -abs(total)
        return abs(total)

    @staticmethod
    def get_payment_description(bill: Any, payments: Optional[List[Any]] = None) -> str:
        """'visa: ₪500, cash: ₪200' style summary of how a bill was paid"""
        parts = []
        if payments:
            for payment in payments:
                amount = _to_float(_get(payment, 'amount'))
                if amount > 0:
                    parts.append(f"{_get(payment, 'payment_type')}: ₪{_money(amount)}")
            return ', '.join(parts) or 'Payment'

        for name, label in LEGACY_AMOUNT_FIELDS:
            amount = _to_float(_get(bill, name))
            if amount > 0:
                parts.append(f"{label}: ₪{_money(amount)}")
        return ', '.join(parts) or 'Payment'

    @staticmethod
    def _effective_deal_amount(selling_price: Optional[float], deal: Any) -> float:
        effective = _to_float(selling_price)
        if _get(deal, 'deal_type') == 'exchange' and _get(deal, 'customer_car_eval_value'):
            effective = max(0.0, effective - _to_float(_get(deal, 'customer_car_eval_value')))
        return effective

    @staticmethod
    def handle_receipt_created(bill_id: int, customer_id: int, bill: Any, customer_name: str,
                               deal_selling_price: Optional[float] = None,
                               payments: Optional[List[Any]] = None, deal: Any = None) -> bool:
        """
        Credit the customer for a receipt.

        The full payment always goes to the balance; the description notes
        whether it covered the deal or exceeded it. Exchange deals compare
        against the selling price minus the trade-in evaluation.
        """
        payment_amount = BalanceService.calculate_total_payment_amount(bill, payments)
        if payment_amount == 0:
            logger.debug(f"No payment amount to process for receipt {bill_id}")
            return True

        payment_text = BalanceService.get_payment_description(bill, payments)

        if _get(bill, 'bill_direction') == 'negative':
            description = f"Expense/Deduction for {customer_name}: {payment_text}"
            change = -abs(payment_amount)
        else:
            effective = BalanceService._effective_deal_amount(deal_selling_price, deal)
            if effective > 0:
                if payment_amount <= effective:
                    description = f"Payment received from {customer_name}: {payment_text} (towards deal)"
                else:
                    excess = payment_amount - effective
                    description = (f"Payment received from {customer_name}: {payment_text} "
                                   f"(₪{_money(effective)} for deal + ₪{_money(excess)} excess)")
            else:
                deal_note = ' (exchange deal - car value credited)' if _get(deal, 'deal_type') == 'exchange' else ''
                description = f"Payment received from {customer_name}: {payment_text}{deal_note}"
            change = payment_amount

        return BalanceService.update_customer_balance(customer_id, change, 'receipt_created', bill_id, description)

    @staticmethod
    def handle_receipt_deleted(bill_id: int, customer_id: int, bill: Any, customer_name: str,
                               deal_selling_price: Optional[float] = None,
                               payments: Optional[List[Any]] = None) -> bool:
        """Reverse handle_receipt_created"""
        payment_amount = BalanceService.calculate_total_payment_amount(bill, payments)
        if payment_amount == 0:
            return True

        payment_text = BalanceService.get_payment_description(bill, payments)
        selling_price = _to_float(deal_selling_price)

        if _get(bill, 'bill_direction') == 'negative':
            description = f"Reversed expense/deduction for {customer_name}: {payment_text}"
            change = abs(payment_amount)
        else:
            if selling_price > 0:
                if payment_amount <= selling_price:
                    description = f"Reversed payment from {customer_name}: {payment_text} (was towards deal)"
                else:
                    excess = payment_amount - selling_price
                    description = (f"Reversed payment from {customer_name}: {payment_text} "
                                   f"(was ₪{_money(selling_price)} for deal + ₪{_money(excess)} excess)")
            else:
                description = f"Reversed payment from {customer_name}: {payment_text}"
            change = -payment_amount

        return BalanceService.update_customer_balance(customer_id, change, 'receipt_deleted', bill_id, description)

    @staticmethod
    def get_customer_id_from_deal(deal: Any) -> Optional[int]:
        """The customer whose balance a deal affects: its customer, else the intermediary seller, else the buyer"""
        if deal is None:
            return None
        customer_id = _get(deal, 'customer_id')
        if customer_id:
            return customer_id
        if _get(deal, 'deal_type') in ('intermediary', 'financing_assistance_intermediary'):
            return _get(deal, 'seller_id') or _get(deal, 'buyer_id')
        return None

    @staticmethod
    def get_customer_id_by_name(customer_name: str) -> Optional[int]:
        if not customer_name:
            return None
        customer = Customer.query.filter_by(name=customer_name).first()
        return customer.id if customer else None

    @staticmethod
    def get_customer_transactions(customer_id: int) -> List[CustomerTransaction]:
        return (CustomerTransaction.query
                .filter_by(customer_id=customer_id)
                .order_by(CustomerTransaction.created_at.desc(), CustomerTransaction.id.desc())
                .all())

    @staticmethod
    def recalculate_customer_balance(customer_id: int) -> Optional[float]:
        """
        Rebuild a customer's balance from the ledger.

        Returns:
            float: The recalculated balance, or None if the customer does not exist
        """
        customer = db.session.get(Customer, customer_id)
        if not customer:
            return None
        total = db.session.query(db.func.coalesce(db.func.sum(CustomerTransaction.amount), 0.0)) \
            .filter(CustomerTransaction.customer_id == customer_id).scalar()
        if abs((customer.balance or 0.0) - total) > 0.005:
            logger.warning(f"Customer {customer_id} balance drift: stored {customer.balance}, ledger {total}")
        customer.balance = total
        return total

    @staticmethod
    def customer_balance_summary(customer_id: int) -> Optional[Dict[str, Any]]:
        customer = db.session.get(Customer, customer_id)
        if not customer:
            return None
        deals = Deal.query.filter(db.or_(Deal.customer_id == customer_id,
                                         Deal.seller_id == customer_id,
                                         Deal.buyer_id == customer_id)).count()
        bills = Bill.query.filter_by(customer_id=customer_id).count()
        return {
            'customer_id': customer_id,
            'name': customer.name,
            'balance': customer.balance or 0.0,
            'deal_count': deals,
            'bill_count': bills,
            'transaction_count': customer.transactions.count(),
        }
