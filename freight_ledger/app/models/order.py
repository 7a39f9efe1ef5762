"""
Order database model.

Orders are owned by the order lifecycle flows; the ledger only reads
their amounts and reacts to status transitions.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Numeric, JSON, Text
from sqlalchemy.sql import func
from freight_ledger.app.db.session import Base
from freight_ledger.app.models.order_enums import OrderStatus, ServiceType


class Order(Base):
    """
    Order model.

    ``order_amount`` is the customer-facing charge and ``base_amount`` the
    house cost recorded at placement time.
    """
    __tablename__ = "orders"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(100), unique=True, index=True, nullable=False)

    # Ownership
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    company_name = Column(String(255), nullable=True)
    order_account = Column(String(50), nullable=True)

    # Charges
    order_amount = Column(Numeric(12, 2), nullable=False)
    base_amount = Column(Numeric(12, 2), nullable=True)

    # Shipment
    service_type = Column(Enum(ServiceType), default=ServiceType.LTL, nullable=False)
    carrier_name = Column(String(255), nullable=True)
    carrier_scac = Column(String(20), nullable=True)

    # Lifecycle
    status = Column(String(50), default=OrderStatus.PENDING_REVIEW.value, nullable=False, index=True)
    status_history = Column(JSON, nullable=True)
    audit_remark = Column(Text, nullable=True)

    # Refund bookkeeping (mirrors the refund ledger pair)
    refund_status = Column(String(20), nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    refund_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}')>"
