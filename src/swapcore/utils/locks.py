"""Concurrency control for custody records.

Every mutating operation holds exclusive locks on all records and accounts it
touches for its full duration. Keys are acquired in sorted order so two
operations that share records can never deadlock; operations on disjoint
records do not wait on each other. A lock is dropped from the registry as soon
as no operation holds or awaits it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: record key -> asyncio.Lock
_record_locks: dict[str, asyncio.Lock] = {}
# Number of RecordLocks holding or waiting on each key
_lock_claims: dict[str, int] = {}
_registry_lock = asyncio.Lock()


def swap_key(initiator: str, swap_id: int) -> str:
    return f"swap:{initiator}:{swap_id}"


def swap_counter_key(initiator: str) -> str:
    return f"swaps:{initiator}"


def pool_key(admin: str, asset_x: str, asset_y: str) -> str:
    return f"pool:{admin}:{asset_x}/{asset_y}"


def registry_key(admin: str) -> str:
    return f"registry:{admin}"


def account_key(owner: str) -> str:
    return f"account:{owner}"


async def get_record_lock(key: str) -> asyncio.Lock:
    """Get or create the lock for a record key."""
    async with _registry_lock:
        if key not in _record_locks:
            _record_locks[key] = asyncio.Lock()
        return _record_locks[key]


async def _claim_record_lock(key: str) -> asyncio.Lock:
    async with _registry_lock:
        if key not in _record_locks:
            _record_locks[key] = asyncio.Lock()
        _lock_claims[key] = _lock_claims.get(key, 0) + 1
        return _record_locks[key]


def _release_claim(key: str) -> None:
    """Drop one claim on ``key``; the lock is evicted once nobody holds or awaits it."""
    remaining = _lock_claims.get(key, 0) - 1
    if remaining > 0:
        _lock_claims[key] = remaining
    else:
        _lock_claims.pop(key, None)
        _record_locks.pop(key, None)


class RecordLock:
    """Context manager holding exclusive access to a set of records.

    Example:
        async with RecordLock(pool_key(admin, "APT", "USDC"), account_key(user)):
            # read reserves, move coins, write back
            ...
    """

    def __init__(
        self,
        *keys: str,
        timeout: Optional[float] = None,
        operation: str = "settlement",
    ):
        """Initialize the lock.

        Args:
            keys: Record keys to lock (duplicates are ignored)
            timeout: Maximum time to wait for all locks (None = wait forever)
            operation: Description of the operation for logging
        """
        self.keys = sorted(set(keys))
        self.timeout = timeout
        self.operation = operation
        self._held: list[asyncio.Lock] = []
        self._claimed: list[str] = []

    async def __aenter__(self) -> "RecordLock":
        """Acquire every lock in key order."""
        try:
            if self.timeout:
                await asyncio.wait_for(self._acquire_all(), timeout=self.timeout)
            else:
                await self._acquire_all()
        except asyncio.TimeoutError:
            self._release_all()
            logger.warning(
                f"Lock timeout for {self.keys} after {self.timeout}s: {self.operation}"
            )
            raise LockTimeoutError(
                f"Could not acquire locks {self.keys} within {self.timeout}s"
            )
        except BaseException:
            self._release_all()
            raise

        logger.debug(f"Locks acquired {self.keys}: {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release every held lock."""
        self._release_all()
        logger.debug(f"Locks released {self.keys}: {self.operation}")
        return False

    async def _acquire_all(self) -> None:
        for key in self.keys:
            lock = await _claim_record_lock(key)
            self._claimed.append(key)
            await lock.acquire()
            self._held.append(lock)

    def _release_all(self) -> None:
        while self._held:
            self._held.pop().release()
        while self._claimed:
            _release_claim(self._claimed.pop())


class LockTimeoutError(Exception):
    """Raised when record locks cannot be acquired within the timeout period."""

    pass


@asynccontextmanager
async def record_lock(
    *keys: str,
    timeout: Optional[float] = None,
    operation: str = "settlement",
):
    """Functional form of ``RecordLock``.

    Example:
        async with record_lock(swap_key(initiator, 0), operation="cancel"):
            ...
    """
    async with RecordLock(*keys, timeout=timeout, operation=operation):
        yield


def clear_record_locks() -> None:
    """Clear all record locks (useful for testing)."""
    _record_locks.clear()
    _lock_claims.clear()
