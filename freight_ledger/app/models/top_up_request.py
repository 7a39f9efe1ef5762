"""
Top-up Request database model.

Customers request balance top-ups; admins approve or reject them.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Numeric, Text
from sqlalchemy.sql import func
from freight_ledger.app.db.session import Base
from freight_ledger.app.models.ledger_enums import TopUpStatus, enum_values


class TopUpRequest(Base):
    """
    Top-up Request model.

    Status flow:
        pending → approved (credit pair written)
        pending → rejected
    """
    __tablename__ = "top_up_requests"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    payment_reference = Column(String(255), nullable=True)
    customer_notes = Column(Text, nullable=True)

    status = Column(
        Enum(TopUpStatus, name="top_up_status", values_callable=enum_values),
        default=TopUpStatus.PENDING,
        nullable=False,
        index=True
    )

    # Review
    approved_amount = Column(Numeric(12, 2), nullable=True)
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TopUpRequest(id={self.id}, user_id={self.user_id}, status='{self.status.value}')>"
