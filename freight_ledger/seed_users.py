"""
Database seeding script for ledger accounts.

Creates the house (supervisor) admin and a demo customer, each with an
opening balance, and prints a token per account for local testing.
Run with ``python -m freight_ledger.seed_users`` once the database is up.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from freight_ledger.app.core.config import settings
from freight_ledger.app.core.jwt import create_access_token
from freight_ledger.app.db.session import AsyncSessionLocal, Base, engine
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.user import User
from freight_ledger.app.models.user_balance import UserBalance
import freight_ledger.app.main  # registers every model with Base


async def seed_users():
    """
    Seed initial ledger accounts.

    Creates:
    - 1 ADMIN user (house account)
    - 1 CUSTOMER user with price ratio 1.5
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting account seeding...")

        result = await db.execute(select(User).where(User.username == "house"))
        if result.scalar_one_or_none():
            print("ℹ️  House account already exists, skipping seeding")
            return

        house = User(
            email=settings.supervisor_email or "house@freight-portal.example",
            username="house",
            full_name="House Account",
            role=UserRole.ADMIN,
            is_active=True,
        )
        customer = User(
            email="ops@acme-shipping.example",
            username="acme",
            full_name="Acme Shipping Ops",
            company_name="Acme Shipping",
            role=UserRole.CUSTOMER,
            price_ratio=Decimal("1.5"),
            is_active=True,
        )
        db.add_all([house, customer])
        await db.flush()

        db.add_all([
            UserBalance(user_id=house.id, current_balance=settings.reset_admin_balance),
            UserBalance(user_id=customer.id, current_balance=settings.reset_customer_balance),
        ])
        await db.commit()

        print("\n🎉 Account seeding completed successfully!")
        for user in (house, customer):
            token = create_access_token({"sub": user.username, "user_id": user.id, "role": user.role.value})
            print(f"  - {user.role.value:<8} {user.username}: {token}")


if __name__ == "__main__":
    asyncio.run(seed_users())
