"""FlightStoreClient — IStoreClient for Dremio over Arrow Flight (``[dremio]`` extra).

Dremio's Flight endpoint takes plain SQL text, so statements are compiled
with SQLAlchemy's literal renderer, which owns quoting and escaping of the
embedded values.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import pyarrow as pa
from pyarrow import flight
from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StoreConnectionError, StoreError
from ..ports.store import IStoreClient, IStoreConnection

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.sql import Executable

    from ..ports.store import Row

logger = logging.getLogger("smile_dremio_gateway.store")

DREMIO_FLIGHT_PORT = 32010


class DremioDialect(DefaultDialect):
    """Generic SQL rendering plus the multi-row ``VALUES`` lists Dremio accepts."""

    name = "dremio"
    supports_statement_cache = True
    supports_multivalues_insert = True


def render_sql(statement: Executable, dialect: DefaultDialect | None = None) -> str:
    """Compile *statement* to SQL text with its values rendered as literals."""
    compiled = statement.compile(
        dialect=dialect or DremioDialect(),
        compile_kwargs={"literal_binds": True},
    )
    return str(compiled)


class FlightStoreConnection(IStoreConnection):
    """One authenticated Flight client; blocking calls run in a worker thread."""

    def __init__(
        self,
        client: flight.FlightClient,
        options: flight.FlightCallOptions,
    ) -> None:
        self._client = client
        self._options = options
        self._dialect = DremioDialect()

    async def execute(self, statement: Executable) -> list[Row]:
        try:
            query = render_sql(statement, self._dialect)
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot render statement: {e}") from e
        logger.debug("Flight query: %s", query)
        return await asyncio.to_thread(self._query, query)

    def _query(self, query: str) -> list[Row]:
        descriptor = flight.FlightDescriptor.for_command(query)
        try:
            info = self._client.get_flight_info(descriptor, self._options)
            reader = self._client.do_get(info.endpoints[0].ticket, self._options)
            rows: list[Row] = reader.read_all().to_pylist()
        except flight.FlightUnavailableError as e:
            raise StoreConnectionError(str(e)) from e
        except (flight.FlightError, pa.ArrowException) as e:
            raise StoreError(str(e)) from e
        return rows


class FlightStoreClient(IStoreClient):
    """Opens a fresh authenticated Flight client per ``connect()`` block."""

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        *,
        port: int = DREMIO_FLIGHT_PORT,
        tls: bool = False,
        routing_tag: str | None = None,
        routing_queue: str | None = None,
    ) -> None:
        if not host:
            raise ValueError("host must not be empty")
        scheme = "grpc+tls" if tls else "grpc+tcp"
        self._location = f"{scheme}://{host}:{port}"
        self._username = username
        self._password = password
        self._routing: list[tuple[bytes, bytes]] = []
        if routing_tag:
            self._routing.append((b"routing-tag", routing_tag.encode()))
        if routing_queue:
            self._routing.append((b"routing-queue", routing_queue.encode()))

    def _open(self) -> tuple[flight.FlightClient, flight.FlightCallOptions]:
        client = flight.FlightClient(self._location)
        try:
            token = client.authenticate_basic_token(
                self._username,
                self._password,
                flight.FlightCallOptions(headers=self._routing),
            )
        except (flight.FlightError, pa.ArrowException) as e:
            client.close()
            raise StoreConnectionError(
                f"Cannot authenticate to {self._location}: {e}"
            ) from e
        headers: list[Any] = [token, *self._routing]
        return client, flight.FlightCallOptions(headers=headers)

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[IStoreConnection]:
        client, options = await asyncio.to_thread(self._open)
        try:
            yield FlightStoreConnection(client, options)
        finally:
            await asyncio.to_thread(client.close)

    async def health_check(self) -> bool:
        try:
            client, _ = await asyncio.to_thread(self._open)
            await asyncio.to_thread(client.close)
            return True
        except Exception:  # noqa: BLE001
            logger.debug("Flight health check failed", exc_info=True)
            return False
