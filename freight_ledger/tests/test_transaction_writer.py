"""
Dual-Transaction Writer Tests.

Covers the sign convention, both-or-neither persistence and ledger
immutability.
"""

import re
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from freight_ledger.app.core.exceptions import (
    LedgerImmutableError, LedgerValidationError, TransactionCreationFailed, UserNotFoundError
)
from freight_ledger.app.domain.ledger.transaction_ids import TransactionPrefix, generate_transaction_id
from freight_ledger.app.domain.ledger.transaction_writer import DualTransactionWriter, TransactionData
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.ledger_enums import TransactionStatus, TransactionType
from freight_ledger.app.models.order import Order
from freight_ledger.app.models.user_balance import UserBalance


def _debit(order_id=None, order_number="FL-1001", customer_amount="120.00", base_amount="80.00"):
    return TransactionData(
        order_id=order_id,
        order_number=order_number,
        description=f"Order payment - {order_number}",
        customer_amount=customer_amount,
        base_amount=base_amount,
        transaction_type=TransactionType.DEBIT,
    )


async def _order(db, customer, number="FL-1001"):
    order = Order(
        order_number=number,
        user_id=customer.id,
        order_amount=Decimal("120.00"),
        base_amount=Decimal("80.00"),
        status="pending_review",
        status_history=[],
    )
    db.add(order)
    await db.commit()
    return order


async def _count_rows(session_factory, **filters):
    async with session_factory() as session:
        query = select(func.count(BalanceTransaction.id))
        for column, value in filters.items():
            query = query.where(getattr(BalanceTransaction, column) == value)
        return await session.scalar(query)


async def _balance(session_factory, user_id):
    async with session_factory() as session:
        return await session.scalar(select(UserBalance.current_balance).where(UserBalance.user_id == user_id))


@pytest.mark.asyncio
async def test_debit_pair_amounts(db_session, session_factory, customer, supervisor):
    """120.00 at ratio 1.5: customer -120/-80, supervisor -80/-80."""
    order = await _order(db_session, customer)

    pair = await DualTransactionWriter.create_dual_transaction(
        db_session, customer.id, supervisor.id, _debit(order_id=order.id)
    )

    c, s = pair.customer_entry, pair.supervisor_entry
    assert (c.amount, c.base_amount) == (Decimal("-120.00"), Decimal("-80.00"))
    assert (s.amount, s.base_amount) == (Decimal("-80.00"), Decimal("-80.00"))
    assert c.is_supervisor_transaction is False
    assert s.is_supervisor_transaction is True
    assert s.user_id == supervisor.id
    assert s.description.endswith("(Base Cost)")
    assert c.order_account == s.order_account == customer.order_account
    assert c.company_name == "Acme Freight"
    assert c.transaction_id.startswith("ORDER-FL1001-")
    assert s.transaction_id.startswith("ORDER-SUP-FL1001-")
    assert s.meta_data["customer_company"] == "Acme Freight"
    assert c.meta_data["supervisor_user_id"] == supervisor.id

    assert await _balance(session_factory, customer.id) == Decimal("880.00")
    assert await _balance(session_factory, supervisor.id) == Decimal("1920.00")


@pytest.mark.asyncio
async def test_credit_pair_is_positive(db_session, customer, supervisor):
    pair = await DualTransactionWriter.create_dual_transaction(
        db_session, customer.id, supervisor.id,
        TransactionData(
            description="Goodwill credit",
            customer_amount=30,
            base_amount=20,
            transaction_type="credit",
        ),
    )

    for entry in (pair.customer_entry, pair.supervisor_entry):
        assert entry.amount > 0 and entry.base_amount > 0
    assert pair.customer_entry.transaction_id.startswith("CREDIT-NA-")


@pytest.mark.asyncio
async def test_orderless_debit_uses_adjustment_prefix(db_session, customer, supervisor):
    pair = await DualTransactionWriter.create_dual_transaction(
        db_session, customer.id, supervisor.id, _debit(order_number=None)
    )
    assert pair.customer_entry.transaction_id.startswith("ADJ-")
    assert pair.supervisor_entry.transaction_id.startswith("ADJ-SUP-")


@pytest.mark.asyncio
async def test_signs_always_match(db_session, customer, supervisor):
    """sign(amount) == sign(base_amount) on every persisted row."""
    for kind, amount in (("debit", "10.00"), ("credit", "7.50"), ("debit", "0.00")):
        await DualTransactionWriter.create_dual_transaction(
            db_session, customer.id, supervisor.id,
            TransactionData(description=kind, customer_amount=amount, base_amount=amount, transaction_type=kind),
        )

    rows = (await db_session.execute(select(BalanceTransaction))).scalars().all()
    assert len(rows) == 6
    for row in rows:
        assert (row.amount > 0) == (row.base_amount > 0)
        assert (row.amount < 0) == (row.base_amount < 0)


@pytest.mark.asyncio
async def test_base_rounding_to_zero_rejected(db_session, session_factory, customer, supervisor):
    """0.01 at ratio 20 has a 0.00 base cost, which cannot carry the debit sign."""
    with pytest.raises(LedgerValidationError):
        await DualTransactionWriter.create_dual_transaction(
            db_session, customer.id, supervisor.id, _debit(customer_amount="0.01", base_amount="0.00")
        )

    assert await _count_rows(session_factory) == 0
    assert await _balance(session_factory, customer.id) == Decimal("1000.00")


@pytest.mark.asyncio
async def test_database_refuses_mixed_sign_row(db_session, customer):
    db_session.add(BalanceTransaction(
        transaction_id="ORDER-MIXED-1",
        user_id=customer.id,
        amount=Decimal("-0.01"),
        base_amount=Decimal("0.00"),
        transaction_type=TransactionType.DEBIT,
        status=TransactionStatus.COMPLETED,
        is_supervisor_transaction=False,
    ))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_duplicate_id_leaves_no_partial_pair(db_session, session_factory, customer, supervisor, monkeypatch):
    """A failing second insert must leave neither entry nor balance change behind."""
    order = await _order(db_session, customer)
    order_id, customer_id, supervisor_id = order.id, customer.id, supervisor.id
    monkeypatch.setattr(
        "freight_ledger.app.domain.ledger.transaction_writer.generate_transaction_id",
        lambda *args, **kwargs: "ORDER-FL1001-FIXED",
    )

    with pytest.raises(TransactionCreationFailed):
        await DualTransactionWriter.create_dual_transaction(
            db_session, customer_id, supervisor_id, _debit(order_id=order_id)
        )

    assert await _count_rows(session_factory, order_id=order_id) == 0
    assert await _balance(session_factory, customer_id) == Decimal("1000.00")
    assert await _balance(session_factory, supervisor_id) == Decimal("2000.00")


@pytest.mark.asyncio
async def test_refund_type_rejected(db_session, customer, supervisor):
    data = _debit()
    data.transaction_type = TransactionType.REFUND
    with pytest.raises(LedgerValidationError):
        await DualTransactionWriter.create_dual_transaction(db_session, customer.id, supervisor.id, data)


@pytest.mark.asyncio
async def test_unknown_type_rejected(db_session, customer, supervisor):
    data = _debit()
    data.transaction_type = "chargeback"
    with pytest.raises(LedgerValidationError) as exc_info:
        await DualTransactionWriter.create_dual_transaction(db_session, customer.id, supervisor.id, data)
    assert exc_info.value.details == {"transaction_type": "chargeback"}


@pytest.mark.asyncio
async def test_missing_amount_rejected(db_session, session_factory, customer, supervisor):
    with pytest.raises(LedgerValidationError):
        await DualTransactionWriter.create_dual_transaction(
            db_session, customer.id, supervisor.id, _debit(base_amount=None)
        )
    assert await _count_rows(session_factory) == 0


@pytest.mark.asyncio
async def test_unknown_user(db_session, session_factory, supervisor):
    with pytest.raises(UserNotFoundError):
        await DualTransactionWriter.create_dual_transaction(db_session, 9999, supervisor.id, _debit())
    assert await _count_rows(session_factory) == 0


@pytest.mark.asyncio
async def test_ledger_rows_are_immutable(db_session, customer, supervisor):
    pair = await DualTransactionWriter.create_dual_transaction(
        db_session, customer.id, supervisor.id, _debit()
    )

    pair.customer_entry.amount = Decimal("-1.00")
    with pytest.raises(LedgerImmutableError):
        await db_session.flush()
    await db_session.rollback()

    await db_session.delete(pair.supervisor_entry)
    with pytest.raises(LedgerImmutableError):
        await db_session.flush()
    await db_session.rollback()


def test_transaction_ids_are_distinct():
    ids = {generate_transaction_id(TransactionPrefix.REFUND, "FL-1001") for _ in range(500)}
    assert len(ids) == 500
    sample = ids.pop()
    assert re.fullmatch(r"REFUND-FL1001-\d{8}T\d{12}-[0-9a-f]{8}", sample)


def test_transaction_id_reference_fallback():
    assert generate_transaction_id(TransactionPrefix.CREDIT, None).startswith("CREDIT-NA-")
    assert generate_transaction_id(TransactionPrefix.CREDIT, "--").startswith("CREDIT-NA-")
