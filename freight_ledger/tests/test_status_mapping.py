"""
Carrier status mapping tests.
"""

import pytest

from freight_ledger.app.domain.orders.status_mapping import map_carrier_status, resolve_synced_status


@pytest.mark.parametrize("carrier_status, expected", [
    ("Check Pending", "pending_review"),
    ("Approval Rejection", "rejected"),
    ("To Be Picked", "confirmed"),
    ("In-Transit", "in_transit"),
    ("DELIVERED", "delivered"),
    ("Cancelled", "cancelled"),
    ("Reject", "exception"),
    ("  delivered  ", "delivered"),
])
def test_known_statuses(carrier_status, expected):
    assert map_carrier_status(carrier_status) == expected


def test_unknown_status_is_snake_cased():
    assert map_carrier_status("Held At Terminal") == "held_at_terminal"


@pytest.mark.parametrize("carrier_status", [None, "", "   "])
def test_empty_status(carrier_status):
    assert map_carrier_status(carrier_status) is None


def test_local_cancellation_wins():
    assert resolve_synced_status("cancelled", "In-Transit") == "cancelled"


def test_missing_carrier_status_keeps_local():
    assert resolve_synced_status("confirmed", None) == "confirmed"
    assert resolve_synced_status("confirmed", "Delivered") == "delivered"
