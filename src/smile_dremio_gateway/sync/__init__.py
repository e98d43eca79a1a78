"""Synchronization engine and per-identifier locking."""

from __future__ import annotations

from .engine import SyncEngine
from .locking import KeyedLock, LockTimeoutError

__all__ = [
    "KeyedLock",
    "LockTimeoutError",
    "SyncEngine",
]
