"""
Order-related enumerations.

Order status is persisted as a plain string: carrier syncs may report
statuses outside this set, which are stored in lower_snake_case.
"""

import enum


class OrderStatus(str, enum.Enum):
    """Known order status values."""
    PENDING_REVIEW = "pending_review"  # Placed, awaiting carrier/admin review
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"  # Carrier accepted, awaiting pickup
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    EXCEPTION = "exception"  # Carrier rejected after acceptance
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    FAILED = "failed"
    REFUNDED = "refunded"


class ServiceType(str, enum.Enum):
    """Shipping service enumeration."""
    LTL = "LTL"  # Less than truckload
    TL = "TL"  # Full truckload
    FBA = "FBA"  # Fulfilment-center delivery


class RefundStatus(str, enum.Enum):
    REFUNDED = "refunded"


REJECTABLE_STATUSES = (
    OrderStatus.PENDING_REVIEW.value,
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
)

CANCELLABLE_STATUSES = (OrderStatus.PENDING_REVIEW.value,)

# Statuses from which a customer may explicitly request a refund
REFUND_ELIGIBLE_STATUSES = (
    OrderStatus.REJECTED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.EXCEPTION.value,
)
