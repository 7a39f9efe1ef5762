"""
Ledger failure queue.

Ledger writes that fail inside decoupled order flows are parked in the
dead letter queue so operators can see and retry them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, desc

from freight_ledger.app.core.exceptions import AppException, LedgerValidationError, ResourceNotFoundError, OrderNotFoundError
from freight_ledger.app.domain.ledger.reconciler import handle_order_status_change
from freight_ledger.app.domain.ledger.refunds import mark_order_refunded
from freight_ledger.app.models.dlq import DeadLetterQueue, DLQStatus
from freight_ledger.app.models.order import Order

logger = logging.getLogger(__name__)

ORDER_REFUND_TASK = "order_refund"


async def record_failure(
    db: AsyncSession,
    task_name: str,
    error_message: str,
    payload: Optional[Dict[str, Any]] = None
) -> DeadLetterQueue:
    """Park a failed ledger task. Commits."""
    item = DeadLetterQueue(
        task_name=task_name,
        error_message=error_message,
        payload=payload,
        status=DLQStatus.FAILED,
        retry_count=0,
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.warning("Ledger task %s parked in DLQ as #%s: %s", task_name, item.id, error_message)
    return item


async def list_failures(
    db: AsyncSession,
    status: Optional[DLQStatus] = None,
    limit: int = 100
) -> List[DeadLetterQueue]:
    query = select(DeadLetterQueue).order_by(desc(DeadLetterQueue.created_at), desc(DeadLetterQueue.id))
    if status is not None:
        query = query.where(DeadLetterQueue.status == status)
    result = await db.execute(query.limit(limit))
    return list(result.scalars().all())


async def retry_failure(db: AsyncSession, dlq_id: int) -> DeadLetterQueue:
    """
    Re-run a parked ledger task.

    Only ``order_refund`` tasks are replayable; the refund generator's
    idempotence makes repeated retries safe.

    Raises:
        ResourceNotFoundError: Unknown DLQ item
        LedgerValidationError: Task type cannot be replayed
        AppException: The retry failed again (recorded on the item first)
    """
    item = await db.get(DeadLetterQueue, dlq_id)
    if item is None:
        raise ResourceNotFoundError("DLQ item", dlq_id)
    if item.task_name != ORDER_REFUND_TASK:
        raise LedgerValidationError("Task type cannot be retried", details={"task_name": item.task_name})

    payload = dict(item.payload or {})
    item.status = DLQStatus.RETRYING
    item.retry_count = (item.retry_count or 0) + 1
    item.last_retry_at = datetime.now(timezone.utc)
    await db.commit()

    try:
        order = await db.get(Order, payload.get("order_id"))
        if order is None:
            raise OrderNotFoundError(payload.get("order_id"))
        outcome = await handle_order_status_change(db, order, payload.get("old_status"), payload.get("new_status"))
    except (AppException, SQLAlchemyError) as exc:
        await db.rollback()
        item = await db.get(DeadLetterQueue, dlq_id)
        item.status = DLQStatus.FAILED
        item.error_message = str(getattr(exc, "details", {}).get("cause") or exc)
        await db.commit()
        raise

    if outcome is not None:
        mark_order_refunded(order, outcome)
    item = await db.get(DeadLetterQueue, dlq_id)
    item.status = DLQStatus.PROCESSED
    await db.commit()
    return item
