import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from marketplace.api.dependencies import get_session_factory
from marketplace.db.base import Base
from marketplace.db.session import create_engine_for_url
from marketplace.main import app
from marketplace.services.rate_limiter import rate_limiter
from tests.utils import SellerFactory, seed_approved_commissions, seed_seller

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite file per test; the schema comes from the ORM metadata."""
    test_engine = create_engine_for_url(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct service calls.

    SQLite takes the write lock at BEGIN, so tests wrap their work in
    ``async with db_session.begin()`` and never leave a transaction open
    while calling the API.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.clear()
    yield
    rate_limiter.clear()


@pytest.fixture
def sample_seller_data() -> dict:
    return SellerFactory.create_seller_data(customer_id="cus_test_001")


@pytest_asyncio.fixture
async def verified_seller_id(session_factory: async_sessionmaker[AsyncSession]) -> str:
    seller = await seed_seller(session_factory, commission_rate=None)
    return seller.id


@pytest_asyncio.fixture
async def approved_commission_ids(
    session_factory: async_sessionmaker[AsyncSession], verified_seller_id: str
) -> list[str]:
    """Two approved commissions of 5000 and 3000 at 10%: seller payout 4500 + 2700."""
    commissions = await seed_approved_commissions(
        session_factory, verified_seller_id, [5000, 3000]
    )
    return [c.id for c in commissions]


@pytest.fixture
def past_datetime() -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=10)
