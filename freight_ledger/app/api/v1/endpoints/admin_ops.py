"""
Admin Operations API Endpoints.

System reset and the ledger failure queue.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from freight_ledger.app.db.session import get_db
from freight_ledger.app.models.dlq import DLQStatus
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.core.guards import require_role
from freight_ledger.app.schemas.admin import (
    LedgerFailureListResponse, LedgerFailureResponse, SystemResetResponse
)
from freight_ledger.app.services.audit import AuditAction, log_event
from freight_ledger.app.services.ledger_failures import list_failures, retry_failure
from freight_ledger.app.services.system_reset import reset_system

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/system-reset", response_model=SystemResetResponse)
async def system_reset(
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Wipe ledger rows, orders and top-up requests and restore opening balances.

    Operational escape hatch; audited.
    """
    summary = await reset_system(db, current_user)
    return SystemResetResponse(message="System reset completed", **summary.__dict__)


@router.get("/ledger-failures", response_model=LedgerFailureListResponse)
async def get_ledger_failures(
    status_filter: Optional[DLQStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List ledger tasks that failed inside order flows."""
    items = await list_failures(db, status=status_filter, limit=limit)
    return LedgerFailureListResponse(items=[LedgerFailureResponse.model_validate(i) for i in items])


@router.post("/ledger-failures/{dlq_id}/retry", response_model=LedgerFailureResponse)
async def retry_ledger_failure(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Replay a failed refund task. Safe to repeat."""
    item = await retry_failure(db, dlq_id)
    await log_event(
        db,
        action=AuditAction.LEDGER_TASK_RETRIED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"dlq_id": dlq_id, "task_name": item.task_name},
    )
    return LedgerFailureResponse.model_validate(item)
