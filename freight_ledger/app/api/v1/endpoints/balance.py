"""
Balance API Endpoints.

Ledger history for the caller and admin manual adjustments.
"""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from freight_ledger.app.core.dependencies import get_current_user
from freight_ledger.app.core.exceptions import LedgerValidationError
from freight_ledger.app.core.guards import require_role
from freight_ledger.app.db.session import get_db
from freight_ledger.app.domain.ledger.accounts import get_supervisor_user, get_user
from freight_ledger.app.domain.ledger.pricing import calculate_base_price, resolve_price_ratio
from freight_ledger.app.domain.ledger.transaction_writer import DualTransactionWriter, TransactionData
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.ledger_enums import TransactionType
from freight_ledger.app.schemas.balance import (
    BalanceAdjustmentCreate, BalanceSnapshotResponse, BalanceTransactionResponse,
    DualTransactionResponse, TransactionListResponse
)
from freight_ledger.app.services.audit import AuditAction, log_event
from freight_ledger.app.services.balances import list_transactions

router = APIRouter(prefix="/balance", tags=["Balance"])


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    type: Optional[TransactionType] = Query(None, description="debit, credit or refund"),
    search: Optional[str] = Query(None, max_length=100),
    range: Literal["7days", "30days", "90days", "all"] = Query("all"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List ledger rows visible to the caller with their balance.

    Customers see their own rows; admins also see all supervisor (base cost) rows.
    """
    page = await list_transactions(
        db, current_user,
        transaction_type=type,
        search=search,
        date_range=range,
        limit=limit,
        offset=offset,
    )
    return TransactionListResponse(
        transactions=[BalanceTransactionResponse.model_validate(t) for t in page.transactions],
        total=page.total,
        limit=limit,
        offset=offset,
        balance=BalanceSnapshotResponse.model_validate(page.balance),
    )


@router.post("/adjustments", response_model=DualTransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    adjustment: BalanceAdjustmentCreate,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Write a manual debit or credit pair for a customer (Admin only).

    The base-cost side is derived from the customer's price ratio.
    """
    if adjustment.transaction_type == TransactionType.REFUND:
        raise LedgerValidationError("Refunds are issued through the order refund flow")

    customer = await get_user(db, adjustment.customer_id)
    supervisor = await get_supervisor_user(db)

    pair = await DualTransactionWriter.create_dual_transaction(
        db,
        customer_id=customer.id,
        supervisor_id=supervisor.id,
        data=TransactionData(
            description=adjustment.description or f"Manual {adjustment.transaction_type.value} adjustment",
            customer_amount=adjustment.amount,
            base_amount=calculate_base_price(adjustment.amount, resolve_price_ratio(customer)),
            transaction_type=adjustment.transaction_type,
            metadata={"adjusted_by": current_user["user_id"]},
        ),
    )

    await log_event(
        db,
        action=AuditAction.BALANCE_ADJUSTED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        target_user_id=customer.id,
        target_username=customer.username,
        metadata={
            "transaction_id": pair.customer_entry.transaction_id,
            "amount": pair.customer_entry.amount,
            "transaction_type": adjustment.transaction_type.value,
        },
    )

    return DualTransactionResponse(
        customer_transaction=BalanceTransactionResponse.model_validate(pair.customer_entry),
        supervisor_transaction=BalanceTransactionResponse.model_validate(pair.supervisor_entry),
    )
