"""Shared fixtures: a SQLite-backed store with the gateway's two tables."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from sqlalchemy import Column, MetaData, String, Table, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql import Executable

from smile_dremio_gateway.exceptions import StoreError
from smile_dremio_gateway.ports.store import IStoreClient, IStoreConnection, Row
from smile_dremio_gateway.store import SQLAlchemyStoreClient, StoreTables

BARCODE = "BARCODE_ID"

metadata = MetaData()

requests_table = Table(
    "requests",
    metadata,
    Column("IGO_REQUEST_ID", String),
    Column("REQUEST_JSON", String),
)

samples_table = Table(
    "samples",
    metadata,
    Column("IGO_REQUEST_ID", String),
    Column("IGO_SAMPLE_NAME", String),
    Column("CMO_SAMPLE_NAME", String),
    Column(BARCODE, String, nullable=True),
    Column("SAMPLE_JSON", String),
)


class StoredRows:
    """Reads the tables back, bypassing the gateway."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def requests(self) -> list[dict[str, Any]]:
        stmt = select(requests_table).order_by(requests_table.c.IGO_REQUEST_ID)
        return await self._fetch(stmt)

    async def samples(self) -> list[dict[str, Any]]:
        stmt = select(samples_table).order_by(
            samples_table.c.IGO_REQUEST_ID, samples_table.c.IGO_SAMPLE_NAME
        )
        return await self._fetch(stmt)

    async def _fetch(self, stmt: Any) -> list[dict[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(r._mapping) for r in result]


class FlakyConnection(IStoreConnection):
    def __init__(self, inner: IStoreConnection, store: FlakyStore) -> None:
        self._inner = inner
        self._store = store

    async def execute(self, statement: Executable) -> list[Row]:
        if any(p(statement) for p in self._store.fail_on):
            raise StoreError("injected failure")
        rows = await self._inner.execute(statement)
        if any(p(statement) for p in self._store.fail_after):
            # the write landed, only the reply is lost
            raise StoreError("injected failure after write")
        return rows


class FlakyStore(IStoreClient):
    """Store client that fails selected statements."""

    def __init__(self, inner: IStoreClient) -> None:
        self._inner = inner
        self.fail_on: list[Callable[[Executable], bool]] = []
        self.fail_after: list[Callable[[Executable], bool]] = []

    def fail(self, kind: str, table_name: str, *, after_write: bool = False) -> None:
        """Fail every ``insert``/``update``/``delete`` of *kind* on *table_name*.

        With *after_write* the statement is executed first and the error is
        raised afterwards.
        """

        def predicate(statement: Executable) -> bool:
            return bool(
                getattr(statement, f"is_{kind}", False)
                and statement.table.name == table_name  # type: ignore[attr-defined]
            )

        (self.fail_after if after_write else self.fail_on).append(predicate)

    def heal(self) -> None:
        self.fail_on.clear()
        self.fail_after.clear()

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[IStoreConnection]:
        async with self._inner.connect() as conn:
            yield FlakyConnection(conn, self)

    async def health_check(self) -> bool:
        return True


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def store(engine: AsyncEngine) -> SQLAlchemyStoreClient:
    return SQLAlchemyStoreClient(engine)


@pytest.fixture
def flaky_store(store: SQLAlchemyStoreClient) -> FlakyStore:
    return FlakyStore(store)


@pytest.fixture
def stored(engine: AsyncEngine) -> StoredRows:
    return StoredRows(engine)


@pytest.fixture
def tables() -> StoreTables:
    return StoreTables("requests", "samples")


@pytest.fixture
def barcode_tables() -> StoreTables:
    return StoreTables("requests", "samples", barcode_column=BARCODE)
