"""
Refund Generator (Domain Logic).

Writes the refund pair for an order. Idempotent: at most one refund row
exists per (order, account). The up-front lookup avoids redundant work,
and the partial unique index on balance_transactions settles concurrent
duplicates at write time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import select

from freight_ledger.app.core.exceptions import OrderNotFoundError, RefundCreationFailed
from freight_ledger.app.domain.ledger.accounts import get_user
from freight_ledger.app.domain.ledger.pricing import calculate_base_price, resolve_price_ratio
from freight_ledger.app.domain.ledger.transaction_writer import (
    TransactionData, build_entry_pair, persist_pair
)
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.ledger_enums import TransactionType
from freight_ledger.app.models.order import Order
from freight_ledger.app.models.order_enums import RefundStatus

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Order refund"
REFUND_TYPE_ORDER_CANCELLATION = "order_cancellation"

Amount = Union[Decimal, int, float, str]


@dataclass
class RefundOutcome:
    """Result of a refund request; ``created`` is False for an existing refund."""
    created: bool
    customer_entry: Optional[BalanceTransaction]
    supervisor_entry: Optional[BalanceTransaction]

    @property
    def amount(self) -> Optional[Decimal]:
        return self.customer_entry.amount if self.customer_entry is not None else None


def mark_order_refunded(order: Order, outcome: RefundOutcome) -> None:
    """Mirror a refund pair onto the order's refund fields. Caller commits."""
    order.refund_status = RefundStatus.REFUNDED.value
    order.refund_amount = outcome.amount
    if order.refund_date is None:
        order.refund_date = datetime.now(timezone.utc)


async def find_refund(db: AsyncSession, order_id: int, user_id: int) -> Optional[BalanceTransaction]:
    result = await db.execute(
        select(BalanceTransaction).where(
            BalanceTransaction.order_id == order_id,
            BalanceTransaction.user_id == user_id,
            BalanceTransaction.transaction_type == TransactionType.REFUND,
            BalanceTransaction.is_supervisor_transaction.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def find_refund_pair(db: AsyncSession, order_id: int, customer_id: int) -> Optional[RefundOutcome]:
    """Existing refund for the customer plus its supervisor counterpart, if any."""
    customer_entry = await find_refund(db, order_id, customer_id)
    if customer_entry is None:
        return None

    result = await db.execute(
        select(BalanceTransaction).where(
            BalanceTransaction.order_id == order_id,
            BalanceTransaction.transaction_type == TransactionType.REFUND,
            BalanceTransaction.is_supervisor_transaction.is_(True),
        )
    )
    return RefundOutcome(
        created=False,
        customer_entry=customer_entry,
        supervisor_entry=result.scalars().first(),
    )


async def find_original_debits(
    db: AsyncSession, order_id: int
) -> Tuple[Optional[BalanceTransaction], Optional[BalanceTransaction]]:
    """Return the (customer, supervisor) debit entries recorded for an order."""
    result = await db.execute(
        select(BalanceTransaction).where(
            BalanceTransaction.order_id == order_id,
            BalanceTransaction.transaction_type == TransactionType.DEBIT,
        ).order_by(BalanceTransaction.id)
    )
    customer_debit = supervisor_debit = None
    for entry in result.scalars().all():
        if entry.is_supervisor_transaction and supervisor_debit is None:
            supervisor_debit = entry
        elif not entry.is_supervisor_transaction and customer_debit is None:
            customer_debit = entry
    return customer_debit, supervisor_debit


async def resolve_refund_amounts(
    db: AsyncSession,
    order: Order,
    customer_refund_amount: Optional[Amount],
    base_refund_amount: Optional[Amount],
    customer=None
) -> Tuple[Amount, Amount]:
    """
    Pick refund amounts.

    Explicit amounts win. Missing ones come from the original debit pair,
    then from the order's recorded charges, then from the pricing transform.
    """
    if customer_refund_amount is not None and base_refund_amount is not None:
        return customer_refund_amount, base_refund_amount

    customer_debit, supervisor_debit = await find_original_debits(db, order.id)

    if customer_refund_amount is None:
        if customer_debit is not None:
            customer_refund_amount = abs(customer_debit.amount)
        else:
            customer_refund_amount = order.order_amount

    if base_refund_amount is None:
        if supervisor_debit is not None:
            base_refund_amount = abs(supervisor_debit.amount)
        elif customer_debit is not None:
            base_refund_amount = abs(customer_debit.base_amount)
        elif order.base_amount is not None:
            base_refund_amount = order.base_amount
        else:
            base_refund_amount = calculate_base_price(customer_refund_amount, resolve_price_ratio(customer))

    return customer_refund_amount, base_refund_amount


async def create_refund_transaction(
    db: AsyncSession,
    order_id: int,
    customer_id: int,
    supervisor_id: int,
    customer_refund_amount: Optional[Amount] = None,
    base_refund_amount: Optional[Amount] = None,
    reason: str = DEFAULT_REFUND_REASON
) -> RefundOutcome:
    """
    Create the refund pair for an order, once.

    Args:
        db: Database session (committed or rolled back here)
        order_id: Order being refunded
        customer_id: Customer account receiving the refund
        supervisor_id: House account receiving the base-cost refund
        customer_refund_amount: Customer-side magnitude; derived when omitted
        base_refund_amount: Base-cost magnitude; derived when omitted
        reason: Human-readable reason recorded in description and metadata

    Returns:
        RefundOutcome with ``created`` False when a refund already existed

    Raises:
        OrderNotFoundError: Order does not exist
        UserNotFoundError: Either account is missing
        LedgerValidationError: Invalid amounts
        RefundCreationFailed: The database rejected the pair
    """
    # 1. Idempotency Check
    existing = await find_refund_pair(db, order_id, customer_id)
    if existing is not None:
        logger.info("Refund already processed for order=%s customer=%s", order_id, customer_id)
        return existing

    # 2. Resolve order snapshot fields
    order = await db.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)

    customer = await get_user(db, customer_id)
    supervisor = await get_user(db, supervisor_id)

    customer_amount, base_amount = await resolve_refund_amounts(
        db, order, customer_refund_amount, base_refund_amount, customer
    )

    # 3. Write through the atomic pair primitive
    data = TransactionData(
        order_id=order.id,
        order_number=order.order_number or "UNKNOWN",
        description=reason,
        customer_amount=customer_amount,
        base_amount=base_amount,
        transaction_type=TransactionType.REFUND,
        metadata={
            "refund_type": REFUND_TYPE_ORDER_CANCELLATION,
            "reason": reason,
            "original_order_id": order.id,
        },
    )
    pair = build_entry_pair(customer, supervisor, data, TransactionType.REFUND)

    try:
        await persist_pair(db, pair)
    except IntegrityError as exc:
        # A concurrent caller won the race; its refund is ours too.
        existing = await find_refund_pair(db, order_id, customer_id)
        if existing is not None:
            logger.info("Concurrent refund detected for order=%s; returning existing entry", order_id)
            return existing
        logger.error("Refund write failed for order=%s: %s", order_id, exc)
        raise RefundCreationFailed(str(exc)) from exc
    except SQLAlchemyError as exc:
        logger.error("Refund write failed for order=%s: %s", order_id, exc)
        raise RefundCreationFailed(str(exc)) from exc

    return RefundOutcome(
        created=True,
        customer_entry=pair.customer_entry,
        supervisor_entry=pair.supervisor_entry,
    )
