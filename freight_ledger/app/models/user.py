"""
User database model.

This module defines the User SQLAlchemy model. Credentials live with the
external identity service; this table carries what the ledger needs.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Numeric
from sqlalchemy.sql import func
from freight_ledger.app.db.session import Base
from freight_ledger.app.models.enums import UserRole


class User(Base):
    """
    User model for ledger participants.

    Customers own the customer-facing ledger rows; the supervisor (house)
    account owns the paired base-cost rows.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)

    # Customer price = base price * ratio; NULL falls back to DEFAULT_PRICE_RATIO
    price_ratio = Column(Numeric(8, 4), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def display_company(self) -> str:
        return self.company_name or self.full_name or self.username

    @property
    def order_account(self) -> str:
        return f"ACC-{self.id:08d}"

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}', role='{self.role.value}')>"
