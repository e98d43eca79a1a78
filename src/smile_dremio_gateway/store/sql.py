"""SQLAlchemyStoreClient — IStoreClient over a pooled async SQLAlchemy engine."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ..exceptions import StoreConnectionError, StoreError
from ..ports.store import RECORDS_COLUMN, IStoreClient, IStoreConnection

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
    from sqlalchemy.sql import Executable

    from ..ports.store import Row

logger = logging.getLogger("smile_dremio_gateway.store")


class SQLAlchemyStoreConnection(IStoreConnection):
    """Executes each statement in its own transaction.

    Statements are committed one by one: the store offers no multi-statement
    atomicity, so the sync engine compensates instead of rolling back.
    """

    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    async def execute(self, statement: Executable) -> list[Row]:
        try:
            result = await self._connection.execute(statement)
            if result.returns_rows:
                rows = [dict(r._mapping) for r in result]
            else:
                rows = [{RECORDS_COLUMN: result.rowcount}]
            await self._connection.commit()
        except SQLAlchemyError as e:
            with contextlib.suppress(SQLAlchemyError):
                await self._connection.rollback()
            if isinstance(e, DBAPIError) and e.connection_invalidated:
                raise StoreConnectionError(str(e)) from e
            raise StoreError(str(e)) from e
        return rows


class SQLAlchemyStoreClient(IStoreClient):
    """Store client backed by an ``AsyncEngine`` and its connection pool.

    Each ``connect()`` checks a connection out of the pool and returns it when
    the block exits.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[IStoreConnection]:
        try:
            connection = await self._engine.connect()
        except (SQLAlchemyError, OSError) as e:
            raise StoreConnectionError(f"Cannot connect to store: {e}") from e
        try:
            yield SQLAlchemyStoreConnection(connection)
        finally:
            await connection.close()

    async def health_check(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:  # noqa: BLE001
            logger.debug("Store health check failed", exc_info=True)
            return False
