"""
Top-up API Endpoints.

Customers submit top-up requests; admins review them.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from freight_ledger.app.core.dependencies import get_current_user
from freight_ledger.app.core.guards import require_role
from freight_ledger.app.db.session import get_db
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.ledger_enums import TopUpStatus
from freight_ledger.app.models.top_up_request import TopUpRequest
from freight_ledger.app.schemas.balance import BalanceTransactionResponse
from freight_ledger.app.schemas.top_up import (
    TopUpListResponse, TopUpResponse, TopUpReview, TopUpReviewResponse, TopUpSubmit
)
from freight_ledger.app.services import top_up as top_up_service

router = APIRouter(prefix="/top-up", tags=["Top-up"])
admin_router = APIRouter(prefix="/admin/top-up", tags=["Admin - Top-up"])


@router.post("/requests", response_model=TopUpResponse, status_code=status.HTTP_201_CREATED)
async def submit_top_up_request(
    request_data: TopUpSubmit,
    current_user: dict = Depends(require_role([UserRole.CUSTOMER])),
    db: AsyncSession = Depends(get_db)
):
    """Submit a top-up request for admin review (Customer only)."""
    request = await top_up_service.submit_top_up(
        db,
        current_user,
        amount=request_data.amount,
        currency=request_data.currency.upper(),
        payment_reference=request_data.payment_reference,
        customer_notes=request_data.customer_notes,
    )
    return request


@router.get("/requests", response_model=TopUpListResponse)
async def list_my_top_up_requests(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List your own top-up requests, newest first."""
    requests = await top_up_service.list_top_ups(db, user_id=current_user["user_id"])
    return TopUpListResponse(requests=[TopUpResponse.model_validate(r) for r in requests])


@admin_router.get("/requests", response_model=TopUpListResponse)
async def list_top_up_requests(
    status_filter: Optional[TopUpStatus] = Query(None, alias="status"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List all top-up requests (Admin only)."""
    requests = await top_up_service.list_top_ups(db, status=status_filter)
    return TopUpListResponse(requests=[TopUpResponse.model_validate(r) for r in requests])


@admin_router.post("/requests/{request_id}/review", response_model=TopUpReviewResponse)
async def review_top_up_request(
    review: TopUpReview,
    request_id: int = Path(..., description="Top-up request ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve or reject a pending top-up request (Admin only).

    Approval credits the customer; rejection requires admin notes.
    """
    if review.action == "reject":
        request = await top_up_service.reject_top_up(db, request_id, current_user, review.admin_notes)
        return TopUpReviewResponse(request=TopUpResponse.model_validate(request))

    pair = await top_up_service.approve_top_up(
        db, request_id, current_user,
        approved_amount=review.approved_amount,
        admin_notes=review.admin_notes,
    )
    request = await db.get(TopUpRequest, request_id)
    return TopUpReviewResponse(
        request=TopUpResponse.model_validate(request),
        customer_transaction=BalanceTransactionResponse.model_validate(pair.customer_entry),
        supervisor_transaction=BalanceTransactionResponse.model_validate(pair.supervisor_entry),
    )
