"""Pytest configuration and fixtures for ChainGov tests"""
import os

# Point the application at an in-memory database before any chaingov import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("CLOCK_MODE", "manual")

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

from chaingov.main import app
from chaingov.models.database import Base, get_db
from chaingov.services.balance_ledger import OwnedBalanceLedger
from chaingov.services.block_clock import ManualBlockClock
from chaingov.services.governance_engine import GovernanceEngine, GovernanceParameters
from chaingov.services.governance_service import GovernanceService, get_governance_service

# Load environment variables
load_dotenv()

OWNER = "owner"


@pytest.fixture
def params() -> GovernanceParameters:
    """Default governance parameters (144 blocks, quorum 500, approval 667)"""
    return GovernanceParameters()


@pytest.fixture
def ledger() -> OwnedBalanceLedger:
    return OwnedBalanceLedger(OWNER)


@pytest.fixture
def engine(ledger: OwnedBalanceLedger, params: GovernanceParameters) -> GovernanceEngine:
    return GovernanceEngine(ledger, params)


@pytest.fixture
def clock() -> ManualBlockClock:
    return ManualBlockClock(0)


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Fresh in-memory database for each test.

    StaticPool keeps a single connection so every session sees the same database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def service(
    session_factory: async_sessionmaker,
    clock: ManualBlockClock,
    params: GovernanceParameters,
) -> GovernanceService:
    """Governance service backed by the test database"""
    svc = GovernanceService(
        session_factory=session_factory,
        clock=clock,
        params=params,
        mint_owner=OWNER,
    )
    await svc.load()
    return svc


@pytest_asyncio.fixture(scope="function")
async def client(
    service: GovernanceService,
    session_factory: async_sessionmaker,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_governance_service():
        return service

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_governance_service] = override_get_governance_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def mock_proposal():
    """Mock governance proposal for tests"""
    return {
        "title": "Raise treasury cap",
        "description": "Raise the treasury spending cap to 10,000 units per epoch",
        "execution_delay": 12,
        "proposer": "alice",
    }
