"""
Order-Status Reconciler Tests.

The transition rule is tested without a database; the handler is tested
against one.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from freight_ledger.app.domain.ledger import reconciler
from freight_ledger.app.domain.ledger.reconciler import (
    RefundDecision, decide_refund, handle_order_status_change, refund_reason
)
from freight_ledger.app.domain.orders.order_service import place_order
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.ledger_enums import TransactionType
from freight_ledger.app.models.order_enums import OrderStatus


@pytest.mark.parametrize("old, new, reason", [
    ("pending_review", "rejected", "Order rejected"),
    ("pending", "cancelled", "Order cancelled"),
    ("in_transit", "failed", "Order failed"),
    ("confirmed", "refunded", "Order refunded"),
    (None, "rejected", "Order rejected"),
    ("PENDING_REVIEW", "Rejected", "Order rejected"),
])
def test_entering_refundable_status_fires(old, new, reason):
    assert decide_refund(old, new) == RefundDecision(should_refund=True, reason=reason)


@pytest.mark.parametrize("old, new", [
    ("pending_review", "confirmed"),
    ("confirmed", "in_transit"),
    ("in_transit", "exception"),
    ("rejected", "refunded"),
    ("cancelled", "cancelled"),
    ("refunded", "failed"),
    ("rejected", "pending_review"),
    ("pending", None),
])
def test_other_transitions_do_not_fire(old, new):
    assert decide_refund(old, new).should_refund is False


def test_reason_accepts_enum_members():
    assert refund_reason(OrderStatus.CANCELLED) == "Order cancelled"
    assert refund_reason("on_hold") == "Order refunded"


def actor(user):
    return {"user_id": user.id, "sub": user.username, "role": user.role.value}


def _record_generator_calls(monkeypatch):
    """Replace the refund generator with a recorder of its keyword arguments."""
    calls = []

    async def fake_generator(db, **kwargs):
        calls.append(kwargs)

    monkeypatch.setattr(reconciler, "create_refund_transaction", fake_generator)
    return calls


@pytest.mark.asyncio
async def test_active_transition_never_calls_generator(db_session, customer, supervisor, monkeypatch):
    placed = await place_order(db_session, actor(customer), "FL-3001", Decimal("200.00"))
    calls = _record_generator_calls(monkeypatch)

    result = await handle_order_status_change(db_session, placed.order, "pending_review", "confirmed")

    assert result is None
    assert calls == []


@pytest.mark.asyncio
async def test_rejection_refunds_once(db_session, customer, supervisor):
    """pending_review -> rejected refunds; rejected -> refunded does not refund again."""
    placed = await place_order(db_session, actor(customer), "FL-3002", Decimal("485.50"))
    order = placed.order

    outcome = await handle_order_status_change(db_session, order, "pending_review", "rejected")
    assert outcome.created is True
    assert outcome.customer_entry.amount == Decimal("485.50")
    assert outcome.supervisor_entry.amount == Decimal("323.67")
    assert outcome.customer_entry.meta_data["reason"] == "Order rejected"

    assert await handle_order_status_change(db_session, order, "rejected", "refunded") is None

    # A replayed transition is absorbed by the generator's idempotence
    replay = await handle_order_status_change(db_session, order, "pending_review", "rejected")
    assert replay.created is False
    assert replay.customer_entry.transaction_id == outcome.customer_entry.transaction_id

    rows = (await db_session.execute(
        select(BalanceTransaction).where(
            BalanceTransaction.order_id == order.id,
            BalanceTransaction.transaction_type == TransactionType.REFUND,
        )
    )).scalars().all()
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_refund_uses_current_order_amount(db_session, customer, supervisor, monkeypatch):
    placed = await place_order(db_session, actor(customer), "FL-3003", Decimal("90.00"))
    calls = _record_generator_calls(monkeypatch)

    await handle_order_status_change(db_session, placed.order, "pending", "cancelled")

    assert len(calls) == 1
    kwargs = calls[0]
    assert kwargs["customer_refund_amount"] == Decimal("90.00")
    assert kwargs["base_refund_amount"] == Decimal("60.00")
    assert kwargs["reason"] == "Order cancelled"
    assert kwargs["supervisor_id"] == supervisor.id
