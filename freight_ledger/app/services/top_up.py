"""
Top-up Service.

Customers submit balance top-up requests; admins approve (writing a
credit pair) or reject them.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, update
from sqlalchemy.exc import SQLAlchemyError

from freight_ledger.app.core.exceptions import LedgerValidationError, ResourceNotFoundError, TransactionCreationFailed
from freight_ledger.app.domain.ledger.accounts import adjust_pending_balance, get_supervisor_user, get_user
from freight_ledger.app.domain.ledger.pricing import (
    calculate_base_price, quantize_money, resolve_price_ratio, to_decimal
)
from freight_ledger.app.domain.ledger.transaction_writer import (
    DualTransaction, TransactionData, build_entry_pair, persist_pair
)
from freight_ledger.app.models.ledger_enums import TopUpStatus, TransactionType
from freight_ledger.app.models.top_up_request import TopUpRequest
from freight_ledger.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


def _positive(value: Any, name: str) -> Decimal:
    amount = quantize_money(to_decimal(value, name))
    if amount <= 0:
        raise LedgerValidationError(f"{name} must be greater than zero", details={name: str(amount)})
    return amount


async def submit_top_up(
    db: AsyncSession,
    actor: Dict[str, Any],
    amount: Any,
    currency: str = "USD",
    payment_reference: Optional[str] = None,
    customer_notes: Optional[str] = None
) -> TopUpRequest:
    """Create a pending top-up request and reserve it in the pending balance."""
    value = _positive(amount, "amount")

    request = TopUpRequest(
        user_id=actor["user_id"],
        amount=value,
        currency=currency,
        payment_reference=payment_reference,
        customer_notes=customer_notes,
        status=TopUpStatus.PENDING,
    )
    db.add(request)
    await adjust_pending_balance(db, actor["user_id"], value)
    await db.commit()

    await log_event(
        db,
        action=AuditAction.TOPUP_SUBMITTED,
        actor_id=actor["user_id"],
        actor_username=actor.get("sub"),
        target_user_id=actor["user_id"],
        metadata={"top_up_id": request.id, "amount": value, "currency": currency},
    )
    return request


async def list_top_ups(
    db: AsyncSession,
    user_id: Optional[int] = None,
    status: Optional[TopUpStatus] = None,
    limit: int = 100
) -> List[TopUpRequest]:
    query = select(TopUpRequest).order_by(desc(TopUpRequest.created_at), desc(TopUpRequest.id))
    if user_id is not None:
        query = query.where(TopUpRequest.user_id == user_id)
    if status is not None:
        query = query.where(TopUpRequest.status == status)
    result = await db.execute(query.limit(limit))
    return list(result.scalars().all())


async def _get_pending(db: AsyncSession, request_id: int) -> TopUpRequest:
    request = await db.get(TopUpRequest, request_id)
    if request is None:
        raise ResourceNotFoundError("Top-up request", request_id)
    if request.status != TopUpStatus.PENDING:
        raise LedgerValidationError(
            "Top-up request has already been reviewed",
            details={"status": request.status.value}
        )
    return request


async def _claim(db: AsyncSession, request: TopUpRequest, status: TopUpStatus) -> None:
    """
    Move a pending request to its review outcome.

    The status check runs inside the UPDATE itself, so of two concurrent
    reviewers exactly one matches the row; the other sees the outcome
    already written and is refused.
    """
    result = await db.execute(
        update(TopUpRequest)
        .where(TopUpRequest.id == request.id, TopUpRequest.status == TopUpStatus.PENDING)
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        await db.refresh(request)
        raise LedgerValidationError(
            "Top-up request has already been reviewed",
            details={"status": request.status.value}
        )
    request.status = status


async def approve_top_up(
    db: AsyncSession,
    request_id: int,
    reviewer: Dict[str, Any],
    approved_amount: Optional[Any] = None,
    admin_notes: Optional[str] = None
) -> DualTransaction:
    """
    Approve a pending top-up.

    The customer is credited at face value and the house account at the
    ratio-derived base amount. The request update, the pending-balance
    release and the credit pair commit together.
    """
    request = await _get_pending(db, request_id)
    amount = _positive(approved_amount if approved_amount is not None else request.amount, "approved_amount")

    customer = await get_user(db, request.user_id)
    supervisor = await get_supervisor_user(db)

    data = TransactionData(
        description=f"Balance top-up #{request.id}",
        customer_amount=amount,
        base_amount=calculate_base_price(amount, resolve_price_ratio(customer)),
        transaction_type=TransactionType.CREDIT,
        order_number=f"TOPUP{request.id}",
        metadata={"top_up_id": request.id, "currency": request.currency},
    )
    pair = build_entry_pair(customer, supervisor, data, TransactionType.CREDIT)

    await _claim(db, request, TopUpStatus.APPROVED)
    request.approved_amount = amount
    request.admin_notes = admin_notes
    request.reviewed_by = reviewer["user_id"]
    request.reviewed_at = datetime.now(timezone.utc)
    await adjust_pending_balance(db, request.user_id, -Decimal(request.amount))

    try:
        await persist_pair(db, pair)
    except SQLAlchemyError as exc:
        logger.error("Top-up approval %s failed: %s", request_id, exc)
        raise TransactionCreationFailed(str(exc)) from exc

    await log_event(
        db,
        action=AuditAction.TOPUP_APPROVED,
        actor_id=reviewer["user_id"],
        actor_username=reviewer.get("sub"),
        target_user_id=customer.id,
        target_username=customer.username,
        metadata={"top_up_id": request_id, "approved_amount": amount},
    )
    return pair


async def reject_top_up(
    db: AsyncSession,
    request_id: int,
    reviewer: Dict[str, Any],
    admin_notes: Optional[str]
) -> TopUpRequest:
    """Reject a pending top-up; a reason is required."""
    if not admin_notes or not admin_notes.strip():
        raise LedgerValidationError("Admin notes are required when rejecting a top-up request")

    request = await _get_pending(db, request_id)
    await _claim(db, request, TopUpStatus.REJECTED)
    request.admin_notes = admin_notes
    request.reviewed_by = reviewer["user_id"]
    request.reviewed_at = datetime.now(timezone.utc)
    await adjust_pending_balance(db, request.user_id, -Decimal(request.amount))
    await db.commit()

    await log_event(
        db,
        action=AuditAction.TOPUP_REJECTED,
        actor_id=reviewer["user_id"],
        actor_username=reviewer.get("sub"),
        target_user_id=request.user_id,
        metadata={"top_up_id": request_id, "admin_notes": admin_notes},
    )
    return request
