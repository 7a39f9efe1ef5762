"""
Order Lifecycle Service (Domain Logic).

Drives the ledger from order events: placement writes the debit pair,
and status transitions (reject, cancel, carrier sync) run through the
order-status reconciler.

Status changes and refund writes are decoupled: the new status is
committed first, and a failed refund is logged and parked in the DLQ
without undoing the transition.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from freight_ledger.app.core.exceptions import (
    AppException, InsufficientPermissionsError, LedgerValidationError,
    OrderNotFoundError, OrderStateError
)
from freight_ledger.app.domain.ledger.accounts import get_supervisor_user, get_user
from freight_ledger.app.domain.ledger.pricing import (
    calculate_base_price, quantize_money, resolve_price_ratio, to_decimal
)
from freight_ledger.app.domain.ledger.reconciler import handle_order_status_change
from freight_ledger.app.domain.ledger.refunds import RefundOutcome, create_refund_transaction, mark_order_refunded
from freight_ledger.app.domain.ledger.transaction_writer import (
    DualTransaction, DualTransactionWriter, TransactionData
)
from freight_ledger.app.domain.orders.status_mapping import resolve_synced_status
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.ledger_enums import TransactionType
from freight_ledger.app.models.order import Order
from freight_ledger.app.models.order_enums import (
    CANCELLABLE_STATUSES, REFUND_ELIGIBLE_STATUSES, REJECTABLE_STATUSES,
    OrderStatus, ServiceType
)
from freight_ledger.app.services.audit import AuditAction, log_event
from freight_ledger.app.services.carrier_client import CarrierClient
from freight_ledger.app.services.ledger_failures import ORDER_REFUND_TASK, record_failure

logger = logging.getLogger(__name__)


@dataclass
class PlacedOrder:
    order: Order
    transactions: DualTransaction


@dataclass
class OrderTransition:
    """Outcome of a status-changing action."""
    order: Order
    old_status: str
    new_status: str
    refund: Optional[RefundOutcome] = None
    refund_error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_admin(actor: Dict[str, Any]) -> bool:
    return actor.get("role") == UserRole.ADMIN.value


def _append_history(order: Order, status: str, note: Optional[str] = None) -> None:
    # Reassign so SQLAlchemy sees the JSON change
    history = list(order.status_history or [])
    history.append({"status": status, "timestamp": _now().isoformat(), "note": note})
    order.status_history = history


async def get_order(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def ensure_order_access(order: Order, actor: Dict[str, Any], allow_admin: bool = True) -> None:
    if allow_admin and _is_admin(actor):
        return
    if order.user_id != actor.get("user_id"):
        raise InsufficientPermissionsError("You do not have access to this order")


async def place_order(
    db: AsyncSession,
    actor: Dict[str, Any],
    order_number: str,
    order_amount: Any,
    service_type: ServiceType = ServiceType.LTL,
    carrier_name: Optional[str] = None,
    carrier_scac: Optional[str] = None
) -> PlacedOrder:
    """
    Record a carrier-accepted order and charge the customer.

    The order row and the debit pair commit together; if the ledger
    write fails the order is not persisted.

    Args:
        db: Database session
        actor: Authenticated user payload placing the order
        order_number: Carrier order number
        order_amount: Customer-facing charge
        service_type: LTL, TL or FBA
        carrier_name: Carrier display name
        carrier_scac: Carrier SCAC code

    Returns:
        PlacedOrder with the order and its debit pair

    Raises:
        LedgerValidationError: Bad amount or duplicate order number
        TransactionCreationFailed: Ledger write rejected
    """
    customer = await get_user(db, actor["user_id"])
    supervisor = await get_supervisor_user(db)

    amount = quantize_money(to_decimal(order_amount, "order_amount"))
    base_amount = calculate_base_price(amount, resolve_price_ratio(customer))

    order = Order(
        order_number=order_number,
        user_id=customer.id,
        company_name=customer.display_company,
        order_account=customer.order_account,
        order_amount=amount,
        base_amount=base_amount,
        service_type=service_type,
        carrier_name=carrier_name,
        carrier_scac=carrier_scac,
        status=OrderStatus.PENDING_REVIEW.value,
        status_history=[],
    )
    _append_history(order, OrderStatus.PENDING_REVIEW.value, "Order placed")
    db.add(order)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise LedgerValidationError("Order number already exists", details={"order_number": order_number})

    try:
        transactions = await DualTransactionWriter.create_dual_transaction(
            db,
            customer_id=customer.id,
            supervisor_id=supervisor.id,
            data=TransactionData(
                order_id=order.id,
                order_number=order_number,
                description=f"Order payment - {order_number}",
                customer_amount=amount,
                base_amount=base_amount,
                transaction_type=TransactionType.DEBIT,
                metadata={"service_type": service_type.value, "carrier_name": carrier_name},
            ),
        )
    except LedgerValidationError:
        # The flushed order must not outlive a rejected charge
        await db.rollback()
        raise

    await log_event(
        db,
        action=AuditAction.ORDER_PLACED,
        actor_id=customer.id,
        actor_username=actor.get("sub"),
        target_user_id=customer.id,
        metadata={"order_id": order.id, "order_number": order_number, "order_amount": amount, "base_amount": base_amount},
    )
    return PlacedOrder(order=order, transactions=transactions)


async def _reconcile_decoupled(
    db: AsyncSession,
    order: Order,
    old_status: str,
    new_status: str
) -> OrderTransition:
    """Run the reconciler after a committed status change; ledger failures do not propagate."""
    order_id = order.id
    transition = OrderTransition(order=order, old_status=old_status, new_status=new_status)
    try:
        transition.refund = await handle_order_status_change(db, order, old_status, new_status)
    except (AppException, SQLAlchemyError) as exc:
        await db.rollback()
        cause = getattr(exc, "details", {}).get("cause") or str(exc)
        logger.error("Refund for order %s (%s -> %s) failed: %s", order_id, old_status, new_status, cause)
        await record_failure(
            db,
            task_name=ORDER_REFUND_TASK,
            error_message=cause,
            payload={"order_id": order_id, "old_status": old_status, "new_status": new_status},
        )
        transition.refund_error = "Refund could not be processed; it has been queued for review"
        transition.order = await get_order(db, order_id)
        return transition

    if transition.refund is not None:
        mark_order_refunded(order, transition.refund)
        await db.commit()
    return transition


async def _apply_status(db: AsyncSession, order: Order, new_status: str, note: Optional[str] = None) -> str:
    old_status = order.status
    order.status = new_status
    _append_history(order, new_status, note)
    await db.commit()
    return old_status


async def reject_order(db: AsyncSession, order_id: int, actor: Dict[str, Any], reason: str) -> OrderTransition:
    """
    Reject an order under review (admin action) and refund it.

    The rejection stands even if the refund write fails.
    """
    order = await get_order(db, order_id)
    if order.status not in REJECTABLE_STATUSES:
        raise OrderStateError("rejected", order.status)

    order.audit_remark = reason
    old_status = await _apply_status(db, order, OrderStatus.REJECTED.value, reason)
    transition = await _reconcile_decoupled(db, order, old_status, OrderStatus.REJECTED.value)

    await log_event(
        db,
        action=AuditAction.ORDER_REJECTED,
        actor_id=actor.get("user_id"),
        actor_username=actor.get("sub"),
        target_user_id=transition.order.user_id,
        metadata={
            "order_id": order_id,
            "reason": reason,
            "refund_created": bool(transition.refund and transition.refund.created),
            "refund_error": transition.refund_error,
        },
    )
    return transition


async def cancel_order(
    db: AsyncSession,
    order_id: int,
    actor: Dict[str, Any],
    carrier: CarrierClient
) -> OrderTransition:
    """
    Cancel an order still under review (owner action).

    The carrier is asked first; a carrier failure leaves the order untouched.
    """
    order = await get_order(db, order_id)
    ensure_order_access(order, actor, allow_admin=False)
    if order.status not in CANCELLABLE_STATUSES:
        raise OrderStateError("cancelled", order.status)

    await carrier.cancel_order(order.order_number)

    old_status = await _apply_status(db, order, OrderStatus.CANCELLED.value, "Cancelled by customer")
    transition = await _reconcile_decoupled(db, order, old_status, OrderStatus.CANCELLED.value)

    await log_event(
        db,
        action=AuditAction.ORDER_CANCELLED,
        actor_id=actor.get("user_id"),
        actor_username=actor.get("sub"),
        target_user_id=transition.order.user_id,
        metadata={"order_id": order_id, "refund_error": transition.refund_error},
    )
    return transition


async def sync_order_status(
    db: AsyncSession,
    order_id: int,
    actor: Dict[str, Any],
    carrier: CarrierClient
) -> OrderTransition:
    """Pull the carrier's status for an order and reconcile any change."""
    order = await get_order(db, order_id)
    ensure_order_access(order, actor)

    carrier_status = await carrier.fetch_order_status(order.order_number)
    new_status = resolve_synced_status(order.status, carrier_status)
    if new_status == order.status:
        return OrderTransition(order=order, old_status=order.status, new_status=new_status)

    old_status = await _apply_status(db, order, new_status, f"Carrier status: {carrier_status}")
    transition = await _reconcile_decoupled(db, order, old_status, new_status)

    await log_event(
        db,
        action=AuditAction.ORDER_STATUS_SYNCED,
        actor_id=actor.get("user_id"),
        actor_username=actor.get("sub"),
        target_user_id=transition.order.user_id,
        metadata={
            "order_id": order_id,
            "carrier_status": carrier_status,
            "old_status": old_status,
            "new_status": new_status,
            "refund_error": transition.refund_error,
        },
    )
    return transition


async def request_refund(
    db: AsyncSession,
    order_id: int,
    actor: Dict[str, Any],
    reason: str = "Order refund"
) -> RefundOutcome:
    """
    Explicitly refund an order in a refund-eligible status.

    Idempotent: an existing refund is returned unchanged. Unlike the
    status-driven path, ledger failures propagate to the caller.
    """
    order = await get_order(db, order_id)
    ensure_order_access(order, actor)
    if order.status not in REFUND_ELIGIBLE_STATUSES:
        raise OrderStateError("refunded", order.status)

    supervisor = await get_supervisor_user(db)
    outcome = await create_refund_transaction(
        db,
        order_id=order.id,
        customer_id=order.user_id,
        supervisor_id=supervisor.id,
        reason=reason,
    )

    mark_order_refunded(order, outcome)
    await db.commit()

    if outcome.created:
        await log_event(
            db,
            action=AuditAction.REFUND_ISSUED,
            actor_id=actor.get("user_id"),
            actor_username=actor.get("sub"),
            target_user_id=order.user_id,
            metadata={"order_id": order.id, "amount": outcome.amount, "reason": reason},
        )
    return outcome
