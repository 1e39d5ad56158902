"""Utility modules."""

from stellramp.utils.locks import (
    LockTimeoutError,
    RecordLock,
    active_record_locks,
    clear_record_locks,
    get_record_lock,
)
from stellramp.utils.logs import configure_logging

__all__ = [
    "LockTimeoutError",
    "RecordLock",
    "active_record_locks",
    "clear_record_locks",
    "get_record_lock",
    "configure_logging",
]
