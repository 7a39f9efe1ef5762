"""
Concurrency Tests.

Validates that race conditions are handled correctly.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from freight_ledger.app.core.exceptions import LedgerValidationError
from freight_ledger.app.domain.ledger.refunds import create_refund_transaction
from freight_ledger.app.domain.ledger.transaction_writer import DualTransaction
from freight_ledger.app.domain.orders.order_service import place_order
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.ledger_enums import TransactionType
from freight_ledger.app.models.user_balance import UserBalance
from freight_ledger.app.services.top_up import approve_top_up, submit_top_up


def actor_for(user):
    return {"user_id": user.id, "sub": user.username, "role": user.role.value}


@pytest.mark.asyncio
async def test_concurrent_refunds_write_one_pair(db_session, session_factory, customer, supervisor):
    """Two simultaneous refund requests for one order leave exactly one refund pair."""
    actor = {"user_id": customer.id, "sub": customer.username, "role": customer.role.value}
    placed = await place_order(db_session, actor, "FL-4001", Decimal("120.00"))
    order_id = placed.order.id

    async def refund():
        # Separate sessions, separate connections
        async with session_factory() as session:
            return await create_refund_transaction(session, order_id, customer.id, supervisor.id)

    first, second = await asyncio.gather(refund(), refund())

    assert sorted([first.created, second.created]) == [False, True]
    assert first.customer_entry.transaction_id == second.customer_entry.transaction_id

    async with session_factory() as session:
        rows = (await session.execute(
            select(BalanceTransaction).where(
                BalanceTransaction.order_id == order_id,
                BalanceTransaction.transaction_type == TransactionType.REFUND,
            )
        )).scalars().all()
        balance = await session.scalar(
            select(UserBalance.current_balance).where(UserBalance.user_id == customer.id)
        )

    assert len([r for r in rows if not r.is_supervisor_transaction]) == 1
    assert len([r for r in rows if r.is_supervisor_transaction]) == 1
    # Debited once, refunded once
    assert balance == Decimal("1000.00")


@pytest.mark.asyncio
async def test_concurrent_orders_get_distinct_ids(session_factory, customer, supervisor):
    """Parallel placements never collide on transaction ids."""
    actor = {"user_id": customer.id, "sub": customer.username, "role": customer.role.value}

    async def place(number):
        async with session_factory() as session:
            placed = await place_order(session, actor, number, Decimal("10.00"))
            return placed.transactions

    pairs = await asyncio.gather(*(place(f"FL-41{i:02d}") for i in range(5)))

    ids = [p.customer_entry.transaction_id for p in pairs] + [p.supervisor_entry.transaction_id for p in pairs]
    assert len(set(ids)) == 10


@pytest.mark.asyncio
async def test_concurrent_top_up_approvals_credit_once(db_session, session_factory, customer, supervisor):
    """Two admins approving the same request at once credit the customer a single time."""
    request = await submit_top_up(db_session, actor_for(customer), Decimal("100.00"))

    async def approve():
        async with session_factory() as session:
            return await approve_top_up(session, request.id, actor_for(supervisor))

    results = await asyncio.gather(approve(), approve(), return_exceptions=True)

    approved = [r for r in results if isinstance(r, DualTransaction)]
    refused = [r for r in results if isinstance(r, LedgerValidationError)]
    assert len(approved) == 1
    assert len(refused) == 1
    assert refused[0].details == {"status": "approved"}

    async with session_factory() as session:
        credits = (await session.execute(
            select(BalanceTransaction).where(BalanceTransaction.transaction_type == TransactionType.CREDIT)
        )).scalars().all()
        balance = await session.scalar(select(UserBalance).where(UserBalance.user_id == customer.id))

    assert len(credits) == 2
    assert balance.current_balance == Decimal("1100.00")
    assert balance.pending_balance == Decimal("0.00")
