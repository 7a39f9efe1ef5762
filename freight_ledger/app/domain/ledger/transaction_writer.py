"""
Dual-Transaction Writer (Domain Logic).

Writes the linked customer + supervisor ledger pair for one financial
event. Both rows and both balance adjustments are committed in a single
database transaction: either the whole pair is visible or none of it is.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from freight_ledger.app.core.exceptions import LedgerValidationError, TransactionCreationFailed
from freight_ledger.app.domain.ledger.accounts import apply_balance_delta, get_user
from freight_ledger.app.domain.ledger.pricing import quantize_money, to_decimal
from freight_ledger.app.domain.ledger.transaction_ids import TransactionPrefix, generate_transaction_id
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.ledger_enums import TransactionType, TransactionStatus
from freight_ledger.app.models.user import User

logger = logging.getLogger(__name__)

BASE_COST_SUFFIX = " (Base Cost)"

# (customer prefix, supervisor prefix) per type; debits outside an order are adjustments
_PREFIXES = {
    TransactionType.DEBIT: (TransactionPrefix.ORDER, TransactionPrefix.ORDER_SUPERVISOR),
    TransactionType.CREDIT: (TransactionPrefix.CREDIT, TransactionPrefix.CREDIT_SUPERVISOR),
    TransactionType.REFUND: (TransactionPrefix.REFUND, TransactionPrefix.REFUND_SUPERVISOR),
}
_ADJUSTMENT_PREFIXES = (TransactionPrefix.ADJUSTMENT, TransactionPrefix.ADJUSTMENT_SUPERVISOR)

# Types callers may request directly; refunds go through the refund generator
DIRECT_TYPES = (TransactionType.DEBIT, TransactionType.CREDIT)


@dataclass
class TransactionData:
    """Input for one dual transaction. Amounts are magnitudes; the type sets the sign."""
    description: str
    customer_amount: Union[Decimal, int, float, str]
    base_amount: Union[Decimal, int, float, str]
    transaction_type: Union[TransactionType, str]
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DualTransaction:
    customer_entry: BalanceTransaction
    supervisor_entry: BalanceTransaction


def parse_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        raise LedgerValidationError("Invalid transaction type", details={"transaction_type": str(value)})


def _magnitude(value: Any, name: str) -> Decimal:
    if value is None:
        raise LedgerValidationError(f"{name} is required")
    amount = to_decimal(value, name)
    if amount < 0:
        raise LedgerValidationError(f"{name} must not be negative", details={name: str(amount)})
    return quantize_money(amount)


def build_entry_pair(
    customer: User,
    supervisor: User,
    data: TransactionData,
    transaction_type: TransactionType
) -> DualTransaction:
    """
    Construct (but do not persist) the customer and supervisor entries.

    Validation runs here so nothing is written for bad input.
    """
    customer_amount = _magnitude(data.customer_amount, "customer_amount")
    base_amount = _magnitude(data.base_amount, "base_amount")

    # amount and base_amount must share a sign, so a lone zero has none to share
    if (customer_amount == 0) != (base_amount == 0):
        raise LedgerValidationError(
            "Amount is too small to carry a base cost",
            details={"customer_amount": str(customer_amount), "base_amount": str(base_amount)}
        )

    if transaction_type == TransactionType.DEBIT:
        customer_amount, base_amount = -customer_amount, -base_amount

    if transaction_type == TransactionType.DEBIT and data.order_id is None:
        customer_prefix, supervisor_prefix = _ADJUSTMENT_PREFIXES
    else:
        customer_prefix, supervisor_prefix = _PREFIXES[transaction_type]

    shared_meta = {
        "transaction_type": transaction_type.value,
        "order_id": data.order_id,
        "customer_user_id": customer.id,
        "supervisor_user_id": supervisor.id,
        **data.metadata,
    }

    customer_entry = BalanceTransaction(
        transaction_id=generate_transaction_id(customer_prefix, data.order_number),
        user_id=customer.id,
        order_id=data.order_id,
        order_number=data.order_number,
        order_account=customer.order_account,
        company_name=customer.display_company,
        amount=customer_amount,
        base_amount=base_amount,
        transaction_type=transaction_type,
        status=TransactionStatus.COMPLETED,
        is_supervisor_transaction=False,
        description=data.description,
        meta_data=shared_meta,
    )
    supervisor_entry = BalanceTransaction(
        transaction_id=generate_transaction_id(supervisor_prefix, data.order_number),
        user_id=supervisor.id,
        order_id=data.order_id,
        order_number=data.order_number,
        order_account=customer.order_account,
        company_name=customer.display_company,
        amount=base_amount,
        base_amount=base_amount,
        transaction_type=transaction_type,
        status=TransactionStatus.COMPLETED,
        is_supervisor_transaction=True,
        description=f"{data.description}{BASE_COST_SUFFIX}",
        meta_data={**shared_meta, "customer_company": customer.display_company},
    )
    return DualTransaction(customer_entry=customer_entry, supervisor_entry=supervisor_entry)


async def persist_pair(db: AsyncSession, pair: DualTransaction) -> DualTransaction:
    """
    Atomically insert both entries and apply both balance deltas.

    Anything already pending on the session (e.g. a new order) commits
    with the pair. On failure the session is rolled back and the
    original database error is re-raised for the caller to classify.
    """
    try:
        db.add_all([pair.customer_entry, pair.supervisor_entry])
        await apply_balance_delta(db, pair.customer_entry.user_id, pair.customer_entry.amount)
        await apply_balance_delta(db, pair.supervisor_entry.user_id, pair.supervisor_entry.amount)
        await db.flush()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info(
        "Ledger pair written: %s / %s (order=%s, type=%s)",
        pair.customer_entry.transaction_id,
        pair.supervisor_entry.transaction_id,
        pair.customer_entry.order_id,
        pair.customer_entry.transaction_type.value,
    )
    return pair


class DualTransactionWriter:

    @staticmethod
    async def create_dual_transaction(
        db: AsyncSession,
        customer_id: int,
        supervisor_id: int,
        data: TransactionData
    ) -> DualTransaction:
        """
        Create a linked customer + supervisor transaction pair.

        Flow:
        1. Validate transaction type (debit or credit only)
        2. Resolve both accounts
        3. Build entries (amount validation, sign convention, snapshots)
        4. Persist both in one transaction

        Args:
            db: Database session (committed or rolled back here)
            customer_id: Customer account owning the customer-side row
            supervisor_id: House account owning the base-cost row
            data: Amounts, description and order reference

        Returns:
            The persisted DualTransaction

        Raises:
            LedgerValidationError: Bad type or amount (nothing written)
            UserNotFoundError: Either account is missing (nothing written)
            TransactionCreationFailed: The database rejected the pair
        """
        transaction_type = parse_transaction_type(data.transaction_type)
        if transaction_type not in DIRECT_TYPES:
            raise LedgerValidationError(
                "Transaction type must be debit or credit",
                details={"transaction_type": transaction_type.value}
            )

        customer = await get_user(db, customer_id)
        supervisor = await get_user(db, supervisor_id)

        pair = build_entry_pair(customer, supervisor, data, transaction_type)

        try:
            return await persist_pair(db, pair)
        except SQLAlchemyError as exc:
            logger.error(
                "Dual transaction failed for customer=%s order=%s: %s",
                customer_id, data.order_id, exc
            )
            raise TransactionCreationFailed(str(exc)) from exc
