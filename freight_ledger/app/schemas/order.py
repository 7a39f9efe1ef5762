"""
Order Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
from freight_ledger.app.models.order_enums import ServiceType
from freight_ledger.app.schemas.balance import BalanceTransactionResponse


class OrderCreate(BaseModel):
    """Schema for recording a carrier-accepted order."""
    order_number: str = Field(..., min_length=1, max_length=100)
    order_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    service_type: ServiceType = ServiceType.LTL
    carrier_name: Optional[str] = Field(None, max_length=255)
    carrier_scac: Optional[str] = Field(None, max_length=20)


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int
    company_name: Optional[str] = None
    order_account: Optional[str] = None
    order_amount: Decimal
    base_amount: Optional[Decimal] = None
    service_type: ServiceType
    carrier_name: Optional[str] = None
    carrier_scac: Optional[str] = None
    status: str
    status_history: Optional[List[Dict[str, Any]]] = None
    audit_remark: Optional[str] = None
    refund_status: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderPlacedResponse(BaseModel):
    success: bool = True
    order: OrderResponse
    customer_transaction: BalanceTransactionResponse
    supervisor_transaction: BalanceTransactionResponse


class OrderRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RefundRequest(BaseModel):
    reason: str = Field("Order refund", min_length=1, max_length=255)


class RefundResponse(BaseModel):
    success: bool = True
    message: str
    created: bool
    refund_amount: Optional[Decimal] = None
    customer_transaction: Optional[BalanceTransactionResponse] = None
    supervisor_transaction: Optional[BalanceTransactionResponse] = None


class OrderTransitionResponse(BaseModel):
    """Result of reject / cancel / sync."""
    success: bool = True
    order: OrderResponse
    old_status: str
    new_status: str
    status_changed: bool
    refund: Optional[RefundResponse] = None
    refund_error: Optional[str] = None
