"""
Top-up Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from freight_ledger.app.models.ledger_enums import TopUpStatus
from freight_ledger.app.schemas.balance import BalanceTransactionResponse


class TopUpSubmit(BaseModel):
    """Schema for a customer top-up request."""
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    payment_reference: Optional[str] = Field(None, max_length=255)
    customer_notes: Optional[str] = Field(None, max_length=1000)


class TopUpResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    currency: str
    payment_reference: Optional[str] = None
    customer_notes: Optional[str] = None
    status: TopUpStatus
    approved_amount: Optional[Decimal] = None
    admin_notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TopUpListResponse(BaseModel):
    success: bool = True
    requests: List[TopUpResponse]


class TopUpReview(BaseModel):
    """Admin decision on a pending request."""
    action: Literal["approve", "reject"]
    approved_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    admin_notes: Optional[str] = Field(None, max_length=1000)


class TopUpReviewResponse(BaseModel):
    success: bool = True
    request: TopUpResponse
    customer_transaction: Optional[BalanceTransactionResponse] = None
    supervisor_transaction: Optional[BalanceTransactionResponse] = None
