"""Transactional scopes for settlement operations.

``settlement_scope`` is how every mutating operation runs: record locks are
taken first, then a fresh session; the session commits only if the body
returns normally and rolls back on any exception, so an operation is either
applied in full or not at all.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swapcore.ledger.repository import LedgerRepository
from swapcore.utils.locks import RecordLock

logger = logging.getLogger(__name__)


@asynccontextmanager
async def settlement_scope(
    session_factory: async_sessionmaker[AsyncSession],
    *lock_keys: str,
    operation: str,
    lock_timeout: Optional[float] = None,
) -> AsyncGenerator[LedgerRepository, None]:
    """Run one indivisible operation under exclusive record locks."""
    async with RecordLock(*lock_keys, timeout=lock_timeout, operation=operation):
        async with session_factory() as session:
            try:
                yield LedgerRepository(session)
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.debug(f"{operation} rolled back: {type(e).__name__}: {e}")
                raise


@asynccontextmanager
async def read_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[LedgerRepository, None]:
    """Read committed state; the session closes without committing."""
    async with session_factory() as session:
        yield LedgerRepository(session)
