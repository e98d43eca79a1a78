"""KeyedLock — serialize operations per request identifier."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

logger = logging.getLogger("smile_dremio_gateway.locking")


class LockTimeoutError(TimeoutError):
    """Raised when a keyed lock cannot be acquired within the timeout."""

    def __init__(self, key: str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(f"Lock on {key!r} not acquired within {timeout}s")


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    ref_count: int = 0


class KeyedLock:
    """
    In-process mutex per key with FIFO waiters.

    Features:
    - Multi-key acquisition in sorted order (prevents deadlocks)
    - Entries are dropped once no task holds or waits for them
    - Optional acquisition timeout

    Usage::

        locks = KeyedLock()
        async with locks.hold(["REQ001", "REQ001a"]):
            ...
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.ref_count += 1
        return entry

    def _checkin(self, key: str) -> None:
        entry = self._entries[key]
        entry.ref_count -= 1
        if entry.ref_count <= 0:
            del self._entries[key]

    async def _acquire(self, key: str) -> None:
        entry = self._checkout(key)
        try:
            if self._timeout is None:
                await entry.lock.acquire()
            else:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError as err:
            self._checkin(key)
            logger.warning("Lock on %s timed out after %.1fs", key, self._timeout)
            raise LockTimeoutError(key, self._timeout or 0.0) from err
        except BaseException:
            self._checkin(key)
            raise
        logger.debug("Lock acquired: %s", key)

    def _release(self, key: str) -> None:
        self._entries[key].lock.release()
        self._checkin(key)
        logger.debug("Lock released: %s", key)

    @contextlib.asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Hold the locks of all *keys* for the duration of the block."""
        ordered = sorted({k for k in keys if k})
        acquired: list[str] = []
        try:
            for key in ordered:
                await self._acquire(key)
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
