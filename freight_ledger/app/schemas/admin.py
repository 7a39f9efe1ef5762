"""
Admin API Schema Definitions.

Pydantic schemas for admin operations endpoints.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List, Dict, Any
from freight_ledger.app.models.dlq import DLQStatus


class SystemResetResponse(BaseModel):
    success: bool = True
    message: str
    transactions_deleted: int
    orders_deleted: int
    top_ups_deleted: int
    balances_reset: int


class LedgerFailureResponse(BaseModel):
    """Schema for a parked ledger task."""
    id: int
    task_name: str
    error_message: str
    payload: Optional[Dict[str, Any]] = None
    status: DLQStatus
    retry_count: int
    created_at: datetime
    last_retry_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LedgerFailureListResponse(BaseModel):
    success: bool = True
    items: List[LedgerFailureResponse]
