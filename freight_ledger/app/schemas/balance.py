"""
Balance & Ledger Schemas.
"""

from pydantic import BaseModel, Field, AliasChoices
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
from freight_ledger.app.models.ledger_enums import TransactionType, TransactionStatus


class BalanceTransactionResponse(BaseModel):
    """Persisted ledger entry shape."""
    id: int
    transaction_id: str
    user_id: int
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    order_account: Optional[str] = None
    company_name: Optional[str] = None
    amount: Decimal
    base_amount: Decimal
    transaction_type: TransactionType
    status: TransactionStatus
    is_supervisor_transaction: bool
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta_data", "metadata")
    )
    created_at: datetime

    class Config:
        from_attributes = True


class DualTransactionResponse(BaseModel):
    """Customer + supervisor pair."""
    success: bool = True
    customer_transaction: BalanceTransactionResponse
    supervisor_transaction: BalanceTransactionResponse


class BalanceSnapshotResponse(BaseModel):
    current_balance: Decimal
    available_balance: Decimal
    pending_balance: Decimal
    credit_limit: Decimal

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    success: bool = True
    transactions: List[BalanceTransactionResponse]
    total: int
    limit: int
    offset: int
    balance: BalanceSnapshotResponse


class BalanceAdjustmentCreate(BaseModel):
    """Admin manual adjustment for a customer outside any order."""
    customer_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    transaction_type: TransactionType = Field(..., description="debit or credit")
    description: Optional[str] = Field(None, max_length=500)
