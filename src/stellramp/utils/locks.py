"""Concurrency control utilities for ramp records.

Provides per-record locking so that concurrent confirm/cancel calls against
the same deposit or withdrawal ID run one after another.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: record_id -> asyncio.Lock
_record_locks: dict[str, asyncio.Lock] = {}

# Holders plus waiters per record; the entry is dropped when this reaches zero
_record_users: dict[str, int] = {}


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def get_record_lock(record_id: str) -> asyncio.Lock:
    """Get or create a lock for a specific record.

    Args:
        record_id: Public deposit or withdrawal ID

    Returns:
        asyncio.Lock for the record
    """
    # No await between lookup and insert, so the event loop cannot interleave
    lock = _record_locks.get(record_id)
    if lock is None:
        lock = asyncio.Lock()
        _record_locks[record_id] = lock
    return lock


class RecordLock:
    """Context manager for exclusive access to one ramp record.

    Example:
        async with RecordLock(deposit_id, operation="confirm_deposit"):
            record = await repo.get_deposit(deposit_id)
            ...
    """

    def __init__(
        self,
        record_id: str,
        timeout: Optional[float] = 30.0,
        operation: str = "record_operation",
    ):
        """Initialize the lock.

        Args:
            record_id: Public deposit or withdrawal ID
            timeout: Maximum time to wait for lock (None = wait forever)
            operation: Description of the operation for logging
        """
        self.record_id = record_id
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "RecordLock":
        """Acquire the lock."""
        self._lock = get_record_lock(self.record_id)
        _record_users[self.record_id] = _record_users.get(self.record_id, 0) + 1

        try:
            if self.timeout:
                self._acquired = await asyncio.wait_for(
                    self._lock.acquire(),
                    timeout=self.timeout,
                )
            else:
                await self._lock.acquire()
                self._acquired = True

            if self._acquired:
                logger.debug(f"Lock acquired for record {self.record_id}: {self.operation}")
            return self

        except asyncio.CancelledError:
            _leave(self.record_id)
            raise
        except asyncio.TimeoutError:
            _leave(self.record_id)
            logger.warning(
                f"Lock timeout for record {self.record_id} after {self.timeout}s: {self.operation}"
            )
            raise LockTimeoutError(
                f"Could not acquire lock for record {self.record_id} within {self.timeout}s"
            )

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release the lock."""
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            _leave(self.record_id)
            logger.debug(f"Lock released for record {self.record_id}: {self.operation}")
        return False


def active_record_locks() -> int:
    """Number of records that currently have a lock in the registry."""
    return len(_record_locks)


def _leave(record_id: str) -> None:
    remaining = _record_users.get(record_id, 1) - 1
    if remaining > 0:
        _record_users[record_id] = remaining
        return
    _record_users.pop(record_id, None)
    lock = _record_locks.get(record_id)
    if lock is not None and not lock.locked():
        del _record_locks[record_id]


def clear_record_locks() -> None:
    """Clear all record locks (useful for testing)."""
    _record_locks.clear()
    _record_users.clear()
