"""
Audit Log Database Model.

Tracks ledger-affecting actions and admin operations for compliance review.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from freight_ledger.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for order lifecycle and ledger events.

    Events logged:
    - ORDER_PLACED / ORDER_REJECTED / ORDER_CANCELLED / ORDER_STATUS_SYNCED
    - REFUND_ISSUED / BALANCE_ADJUSTED
    - TOPUP_SUBMITTED / TOPUP_APPROVED / TOPUP_REJECTED
    - SYSTEM_RESET
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Whose account or order the action touched
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, target={self.target_username})>"
