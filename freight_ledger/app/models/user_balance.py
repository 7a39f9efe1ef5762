"""
User Balance database model.

Running balance per account, adjusted in the same database transaction
as each ledger entry.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric
from sqlalchemy.sql import func
from freight_ledger.app.db.session import Base


class UserBalance(Base):
    """User balance snapshot derived from balance_transactions."""
    __tablename__ = "user_balances"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False, index=True)

    current_balance = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    pending_balance = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)  # Top-ups awaiting review
    credit_limit = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def available_balance(self) -> Decimal:
        return Decimal(self.current_balance or 0) + Decimal(self.credit_limit or 0)

    def __repr__(self):
        return f"<UserBalance(user_id={self.user_id}, current={self.current_balance})>"
