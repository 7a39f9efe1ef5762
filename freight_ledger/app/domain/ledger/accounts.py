"""
Ledger account lookups and balance maintenance.
"""

from decimal import Decimal
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from freight_ledger.app.core.config import settings
from freight_ledger.app.core.exceptions import ResourceNotFoundError, UserNotFoundError
from freight_ledger.app.models.user import User
from freight_ledger.app.models.user_balance import UserBalance
from freight_ledger.app.models.enums import UserRole


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Fetch a ledger participant or raise UserNotFoundError."""
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def get_supervisor_user(db: AsyncSession) -> User:
    """
    Resolve the supervisor (house) account.

    Uses SUPERVISOR_EMAIL when configured, otherwise the earliest active admin.
    """
    query = select(User).where(User.role == UserRole.ADMIN, User.is_active.is_(True))
    if settings.supervisor_email:
        query = query.where(User.email == settings.supervisor_email)
    query = query.order_by(User.created_at, User.id).limit(1)

    result = await db.execute(query)
    supervisor = result.scalar_one_or_none()
    if supervisor is None:
        raise ResourceNotFoundError("Supervisor account")
    return supervisor


async def get_balance(db: AsyncSession, user_id: int) -> Optional[UserBalance]:
    result = await db.execute(select(UserBalance).where(UserBalance.user_id == user_id))
    return result.scalar_one_or_none()


async def lock_balance(db: AsyncSession, user_id: int) -> UserBalance:
    """Load (or create) the balance row for update within the current transaction."""
    result = await db.execute(
        select(UserBalance).where(UserBalance.user_id == user_id).with_for_update()
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        balance = UserBalance(
            user_id=user_id,
            current_balance=Decimal("0.00"),
            pending_balance=Decimal("0.00"),
            credit_limit=Decimal("0.00"),
        )
        db.add(balance)
        await db.flush()
    return balance


async def apply_balance_delta(db: AsyncSession, user_id: int, delta: Decimal) -> UserBalance:
    """Add a signed ledger amount to the account's running balance. Caller commits."""
    balance = await lock_balance(db, user_id)
    balance.current_balance = Decimal(balance.current_balance or 0) + delta
    return balance


async def adjust_pending_balance(db: AsyncSession, user_id: int, delta: Decimal) -> UserBalance:
    """Track top-up amounts awaiting review. Caller commits."""
    balance = await lock_balance(db, user_id)
    pending = Decimal(balance.pending_balance or 0) + delta
    balance.pending_balance = max(pending, Decimal("0.00"))
    return balance
