"""
Order API Endpoints.

Order placement and the lifecycle transitions that move money:
reject (admin), cancel (owner), carrier sync and explicit refund.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from freight_ledger.app.core.dependencies import get_current_user
from freight_ledger.app.core.guards import require_role
from freight_ledger.app.db.session import get_db
from freight_ledger.app.domain.ledger.refunds import RefundOutcome
from freight_ledger.app.domain.orders import order_service
from freight_ledger.app.domain.orders.order_service import OrderTransition
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.schemas.balance import BalanceTransactionResponse
from freight_ledger.app.schemas.order import (
    OrderCreate, OrderPlacedResponse, OrderRejectRequest, OrderResponse,
    OrderTransitionResponse, RefundRequest, RefundResponse
)
from freight_ledger.app.services.carrier_client import CarrierClient, get_carrier_client

router = APIRouter(prefix="/orders", tags=["Orders"])


def _refund_response(outcome: Optional[RefundOutcome]) -> Optional[RefundResponse]:
    if outcome is None:
        return None
    return RefundResponse(
        message="Refund processed successfully" if outcome.created else "Refund already processed",
        created=outcome.created,
        refund_amount=outcome.amount,
        customer_transaction=(
            BalanceTransactionResponse.model_validate(outcome.customer_entry)
            if outcome.customer_entry is not None else None
        ),
        supervisor_transaction=(
            BalanceTransactionResponse.model_validate(outcome.supervisor_entry)
            if outcome.supervisor_entry is not None else None
        ),
    )


def _transition_response(transition: OrderTransition) -> OrderTransitionResponse:
    return OrderTransitionResponse(
        order=OrderResponse.model_validate(transition.order),
        old_status=transition.old_status,
        new_status=transition.new_status,
        status_changed=transition.changed,
        refund=_refund_response(transition.refund),
        refund_error=transition.refund_error,
    )


@router.post("", response_model=OrderPlacedResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    order_data: OrderCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a carrier-accepted order and debit the customer.

    The order and its dual debit commit together.
    """
    placed = await order_service.place_order(
        db,
        current_user,
        order_number=order_data.order_number,
        order_amount=order_data.order_amount,
        service_type=order_data.service_type,
        carrier_name=order_data.carrier_name,
        carrier_scac=order_data.carrier_scac,
    )
    return OrderPlacedResponse(
        order=OrderResponse.model_validate(placed.order),
        customer_transaction=BalanceTransactionResponse.model_validate(placed.transactions.customer_entry),
        supervisor_transaction=BalanceTransactionResponse.model_validate(placed.transactions.supervisor_entry),
    )


@router.post("/{order_id}/reject", response_model=OrderTransitionResponse)
async def reject_order(
    body: OrderRejectRequest,
    order_id: int = Path(..., description="Order ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Reject an order under review (Admin only).

    The rejection stands even if the refund cannot be written; the
    response then carries ``refund_error``.
    """
    transition = await order_service.reject_order(db, order_id, current_user, body.reason)
    return _transition_response(transition)


@router.post("/{order_id}/cancel", response_model=OrderTransitionResponse)
async def cancel_order(
    order_id: int = Path(..., description="Order ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    carrier: CarrierClient = Depends(get_carrier_client)
):
    """Cancel your own order while it is still under review."""
    transition = await order_service.cancel_order(db, order_id, current_user, carrier)
    return _transition_response(transition)


@router.post("/{order_id}/sync", response_model=OrderTransitionResponse)
async def sync_order(
    order_id: int = Path(..., description="Order ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    carrier: CarrierClient = Depends(get_carrier_client)
):
    """Refresh an order's status from the carrier."""
    transition = await order_service.sync_order_status(db, order_id, current_user, carrier)
    return _transition_response(transition)


@router.post("/{order_id}/refund", response_model=RefundResponse)
async def refund_order(
    body: RefundRequest,
    order_id: int = Path(..., description="Order ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Refund a rejected, cancelled or exception order.

    Idempotent: repeating the call returns the existing refund.
    """
    outcome = await order_service.request_refund(db, order_id, current_user, body.reason)
    return _refund_response(outcome)
