from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.sql import Executable

Row = dict[str, Any]

#: Column carrying the affected-row count of an insert/update/delete.
RECORDS_COLUMN = "Records"


@runtime_checkable
class IStoreConnection(Protocol):
    """A connection scoped to one synchronization operation."""

    async def execute(self, statement: Executable) -> list[Row]:
        """
        Execute *statement* and return its rows.

        Data-modification statements return a single row whose
        ``Records`` column holds the affected-row count.

        Raises:
            StoreError: If the store rejects the statement.
            StoreConnectionError: If the store cannot be reached.
        """
        ...


@runtime_checkable
class IStoreClient(Protocol):
    """
    Port for the analytic store.

    ``connect()`` acquires a connection and guarantees its release when the
    ``async with`` block exits, whatever the outcome.
    """

    def connect(self) -> AbstractAsyncContextManager[IStoreConnection]:
        """Acquire a connection for the duration of an ``async with`` block."""
        ...

    async def health_check(self) -> bool:
        """Return True if the store is reachable."""
        ...
