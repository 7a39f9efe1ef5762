"""
Balance listing service.

Read side of the ledger: filtered transaction history plus the caller's
balance snapshot.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_, desc

from freight_ledger.app.domain.ledger.accounts import get_balance
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.ledger_enums import TransactionType

MAX_PAGE_SIZE = 100

RANGE_DAYS = {
    "7days": 7,
    "30days": 30,
    "90days": 90,
}


@dataclass
class BalanceSnapshot:
    current_balance: Decimal = Decimal("0.00")
    available_balance: Decimal = Decimal("0.00")
    pending_balance: Decimal = Decimal("0.00")
    credit_limit: Decimal = Decimal("0.00")


@dataclass
class TransactionPage:
    transactions: List[BalanceTransaction]
    total: int
    balance: BalanceSnapshot


async def get_balance_snapshot(db: AsyncSession, user_id: int) -> BalanceSnapshot:
    balance = await get_balance(db, user_id)
    if balance is None:
        return BalanceSnapshot()
    return BalanceSnapshot(
        current_balance=balance.current_balance,
        available_balance=balance.available_balance,
        pending_balance=balance.pending_balance,
        credit_limit=balance.credit_limit,
    )


def _visibility_filter(actor: Dict[str, Any]):
    """Customers see their own rows; admins also see every supervisor row."""
    user_id = actor["user_id"]
    if actor.get("role") == UserRole.ADMIN.value:
        return or_(
            BalanceTransaction.user_id == user_id,
            BalanceTransaction.is_supervisor_transaction.is_(True),
        )
    return and_(
        BalanceTransaction.user_id == user_id,
        BalanceTransaction.is_supervisor_transaction.is_(False),
    )


async def list_transactions(
    db: AsyncSession,
    actor: Dict[str, Any],
    transaction_type: Optional[TransactionType] = None,
    search: Optional[str] = None,
    date_range: str = "all",
    limit: int = 50,
    offset: int = 0
) -> TransactionPage:
    """
    List ledger rows visible to the caller, newest first.

    Args:
        db: Database session
        actor: Authenticated user payload
        transaction_type: Restrict to debit, credit or refund rows
        search: Case-insensitive match on description, order number or transaction id
        date_range: 7days, 30days, 90days or all
        limit: Page size (capped at MAX_PAGE_SIZE)
        offset: Rows to skip

    Returns:
        TransactionPage with the rows, total matching count and balance snapshot
    """
    conditions = [_visibility_filter(actor)]

    if transaction_type is not None:
        conditions.append(BalanceTransaction.transaction_type == transaction_type)

    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(
            BalanceTransaction.description.ilike(pattern),
            BalanceTransaction.order_number.ilike(pattern),
            BalanceTransaction.transaction_id.ilike(pattern),
        ))

    days = RANGE_DAYS.get(date_range)
    if days is not None:
        conditions.append(BalanceTransaction.created_at >= datetime.now(timezone.utc) - timedelta(days=days))

    total = await db.scalar(select(func.count(BalanceTransaction.id)).where(*conditions))

    query = (
        select(BalanceTransaction)
        .where(*conditions)
        .order_by(desc(BalanceTransaction.created_at), desc(BalanceTransaction.id))
        .limit(min(limit, MAX_PAGE_SIZE))
        .offset(offset)
    )
    result = await db.execute(query)

    return TransactionPage(
        transactions=list(result.scalars().all()),
        total=total or 0,
        balance=await get_balance_snapshot(db, actor["user_id"]),
    )
