"""
System reset.

Administrative escape hatch: wipes ledger rows, orders and top-up
requests and restores opening balances. Uses Core bulk statements, which
bypass the ORM immutability guard on ledger entries.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select

from freight_ledger.app.core.config import settings
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.order import Order
from freight_ledger.app.models.top_up_request import TopUpRequest
from freight_ledger.app.models.user import User
from freight_ledger.app.models.user_balance import UserBalance
from freight_ledger.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


@dataclass
class ResetSummary:
    transactions_deleted: int
    orders_deleted: int
    top_ups_deleted: int
    balances_reset: int


async def reset_system(db: AsyncSession, actor: Dict[str, Any]) -> ResetSummary:
    """
    Wipe transactional data and reset every user's balance.

    Admins restart at settings.reset_admin_balance and customers at
    settings.reset_customer_balance. All deletions and resets commit
    together.
    """
    # Ledger rows reference orders, so they go first
    transactions = await db.execute(delete(BalanceTransaction))
    orders = await db.execute(delete(Order))
    top_ups = await db.execute(delete(TopUpRequest))
    await db.execute(delete(UserBalance))

    users = (await db.execute(select(User.id, User.role))).all()
    for user_id, role in users:
        opening = settings.reset_admin_balance if role == UserRole.ADMIN else settings.reset_customer_balance
        db.add(UserBalance(
            user_id=user_id,
            current_balance=Decimal(opening),
            pending_balance=Decimal("0.00"),
            credit_limit=Decimal("0.00"),
        ))

    await db.commit()

    summary = ResetSummary(
        transactions_deleted=transactions.rowcount,
        orders_deleted=orders.rowcount,
        top_ups_deleted=top_ups.rowcount,
        balances_reset=len(users),
    )
    logger.warning("System reset by user %s: %s", actor.get("user_id"), summary)

    await log_event(
        db,
        action=AuditAction.SYSTEM_RESET,
        actor_id=actor.get("user_id"),
        actor_username=actor.get("sub"),
        metadata=summary.__dict__,
    )
    return summary
