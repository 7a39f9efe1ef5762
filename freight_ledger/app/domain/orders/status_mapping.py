"""
Carrier status mapping.

Translates carrier-reported order statuses into portal statuses.
"""

from typing import Optional

from freight_ledger.app.models.order_enums import OrderStatus

CARRIER_STATUS_MAP = {
    "check pending": OrderStatus.PENDING_REVIEW.value,
    "approval rejection": OrderStatus.REJECTED.value,
    "to be picked": OrderStatus.CONFIRMED.value,
    "in-transit": OrderStatus.IN_TRANSIT.value,
    "delivered": OrderStatus.DELIVERED.value,
    "cancelled": OrderStatus.CANCELLED.value,
    "reject": OrderStatus.EXCEPTION.value,
}


def map_carrier_status(carrier_status: Optional[str]) -> Optional[str]:
    """
    Map a carrier status string to a portal status.

    Unknown statuses are kept in lower_snake_case; empty input maps to None.
    """
    if carrier_status is None:
        return None
    raw = carrier_status.strip()
    if not raw:
        return None
    mapped = CARRIER_STATUS_MAP.get(raw.lower())
    if mapped is not None:
        return mapped
    return "_".join(raw.lower().split())


def resolve_synced_status(local_status: str, carrier_status: Optional[str]) -> str:
    """A locally cancelled order stays cancelled whatever the carrier reports."""
    if local_status == OrderStatus.CANCELLED.value:
        return local_status
    return map_carrier_status(carrier_status) or local_status
