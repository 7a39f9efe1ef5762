"""
Centralized Test Configuration.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from freight_ledger.app.main import app
from freight_ledger.app.db.session import get_db, Base
from freight_ledger.app.core.jwt import create_access_token
from freight_ledger.app.models.enums import UserRole
from freight_ledger.app.models.user import User
from freight_ledger.app.models.user_balance import UserBalance

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# File-backed database per test so concurrent sessions get real connections
@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(autouse=True)
def apply_overrides(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def _create_user(db, username, role, opening_balance, price_ratio=None, company_name=None):
    user = User(
        email=f"{username}@test.com",
        username=username,
        full_name=username.title(),
        company_name=company_name,
        role=role,
        price_ratio=price_ratio,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    db.add(UserBalance(
        user_id=user.id,
        current_balance=opening_balance,
        pending_balance=Decimal("0.00"),
        credit_limit=Decimal("0.00"),
    ))
    await db.commit()
    return user


@pytest.fixture
async def supervisor(db_session):
    """House account (earliest active admin)."""
    return await _create_user(db_session, "house", UserRole.ADMIN, Decimal("2000.00"))


@pytest.fixture
async def customer(db_session, supervisor):
    return await _create_user(
        db_session, "acme", UserRole.CUSTOMER, Decimal("1000.00"),
        price_ratio=Decimal("1.5"), company_name="Acme Freight"
    )


@pytest.fixture
async def other_customer(db_session, supervisor):
    return await _create_user(db_session, "globex", UserRole.CUSTOMER, Decimal("1000.00"))


def token_for(user):
    return create_access_token(data={"sub": user.username, "user_id": user.id, "role": user.role.value})


def auth_headers(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def admin_headers(supervisor):
    return auth_headers(supervisor)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def headers_for():
    return auth_headers
