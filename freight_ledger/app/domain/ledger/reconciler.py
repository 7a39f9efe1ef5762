"""
Order-Status Reconciler (Domain Logic).

Observes order status transitions and issues refunds when an order
newly enters a refundable terminal state. The transition rule is the
pure ``decide_refund``; ``handle_order_status_change`` applies it.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from freight_ledger.app.domain.ledger.accounts import get_supervisor_user, get_user
from freight_ledger.app.domain.ledger.pricing import calculate_base_price, resolve_price_ratio
from freight_ledger.app.domain.ledger.refunds import (
    RefundOutcome, create_refund_transaction, find_original_debits
)
from freight_ledger.app.models.order import Order
from freight_ledger.app.models.order_enums import OrderStatus

logger = logging.getLogger(__name__)

REFUNDABLE_STATUSES = frozenset({
    OrderStatus.CANCELLED.value,
    OrderStatus.REJECTED.value,
    OrderStatus.FAILED.value,
    OrderStatus.REFUNDED.value,
})

REFUND_REASONS = {
    OrderStatus.CANCELLED.value: "Order cancelled",
    OrderStatus.REJECTED.value: "Order rejected",
    OrderStatus.FAILED.value: "Order failed",
    OrderStatus.REFUNDED.value: "Order refunded",
}
DEFAULT_REASON = "Order refunded"


@dataclass(frozen=True)
class RefundDecision:
    should_refund: bool
    reason: Optional[str] = None


def _normalize(status: Optional[str]) -> str:
    if status is None:
        return ""
    value = status.value if isinstance(status, OrderStatus) else str(status)
    return value.strip().lower()


def is_refundable(status: Optional[str]) -> bool:
    return _normalize(status) in REFUNDABLE_STATUSES


def refund_reason(status: Optional[str]) -> str:
    return REFUND_REASONS.get(_normalize(status), DEFAULT_REASON)


def decide_refund(old_status: Optional[str], new_status: Optional[str]) -> RefundDecision:
    """
    Decide whether a status transition should produce a refund.

    Fires only when moving from a non-refundable status into a refundable
    one; moves between two refundable statuses never re-trigger.

    Example:
        decide_refund("pending_review", "rejected") -> RefundDecision(True, "Order rejected")
        decide_refund("rejected", "refunded")       -> RefundDecision(False)
    """
    if not is_refundable(old_status) and is_refundable(new_status):
        return RefundDecision(should_refund=True, reason=refund_reason(new_status))
    return RefundDecision(should_refund=False)


async def resolve_base_refund_amount(db: AsyncSession, order: Order, customer) -> Decimal:
    """Base amount to refund: original supervisor debit, recorded base cost, or recomputed."""
    customer_debit, supervisor_debit = await find_original_debits(db, order.id)
    if supervisor_debit is not None:
        return abs(supervisor_debit.amount)
    if customer_debit is not None:
        return abs(customer_debit.base_amount)
    if order.base_amount is not None:
        return order.base_amount
    return calculate_base_price(order.order_amount, resolve_price_ratio(customer))


async def handle_order_status_change(
    db: AsyncSession,
    order: Order,
    old_status: Optional[str],
    new_status: Optional[str]
) -> Optional[RefundOutcome]:
    """
    React to an order status transition.

    Args:
        db: Database session
        order: Order whose status changed (already persisted by the caller)
        old_status: Status before the change
        new_status: Status after the change

    Returns:
        RefundOutcome when a refund was issued or already existed, None when
        the transition does not qualify

    Raises:
        Whatever the refund generator raises; callers decide whether a
        ledger failure should affect the order flow.
    """
    decision = decide_refund(old_status, new_status)
    if not decision.should_refund:
        return None

    logger.info(
        "Order %s moved %s -> %s; issuing refund (%s)",
        order.id, old_status, new_status, decision.reason
    )

    customer = await get_user(db, order.user_id)
    supervisor = await get_supervisor_user(db)
    base_amount = await resolve_base_refund_amount(db, order, customer)

    return await create_refund_transaction(
        db,
        order_id=order.id,
        customer_id=order.user_id,
        supervisor_id=supervisor.id,
        customer_refund_amount=order.order_amount,
        base_refund_amount=base_amount,
        reason=decision.reason,
    )
