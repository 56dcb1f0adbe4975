"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"
os.environ["DRY_RUN"] = "true"

from swapcore.assets import TokenPair
from swapcore.config import Settings
from swapcore.ledger.database import build_engine, create_session_factory, init_db
from swapcore.ledger.repository import LedgerRepository
from swapcore.utils.locks import clear_record_locks

APT_USDC = TokenPair("APT", "USDC")

START_TIME = 1_700_000_000


class ManualClock:
    """Clock the tests move by hand."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_record_locks():
    """Record locks are bound to an event loop; start every test without any."""
    clear_record_locks()
    yield
    clear_record_locks()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        environment="test",
        aggregator_admin="admin",
        venue_names="Liquidswap,Panora,Thala,Cetus,Cellana",
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def pair() -> TokenPair:
    return APT_USDC


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a file-backed database engine so every session sees the same data."""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ledger_repo(db_session: AsyncSession) -> LedgerRepository:
    """Create ledger repository for testing."""
    return LedgerRepository(db_session)


@pytest.fixture
def fund(session_factory):
    """Credit accounts outside of any engine: ``await fund("alice", "APT", 100)``."""

    async def _fund(owner: str, asset: str, amount: int) -> None:
        async with session_factory() as session:
            await LedgerRepository(session).credit_balance(owner, asset, amount)
            await session.commit()

    return _fund


@pytest.fixture
def balance_of(session_factory):
    """Read a committed balance: ``await balance_of("alice", "APT")``."""

    async def _balance_of(owner: str, asset: str) -> int:
        async with session_factory() as session:
            return await LedgerRepository(session).balance_of(owner, asset)

    return _balance_of
