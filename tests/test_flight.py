"""Tests for the Dremio Flight store: SQL rendering and the client wrapper."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

pa = pytest.importorskip("pyarrow")
flight = pytest.importorskip("pyarrow.flight")

from sqlalchemy import bindparam, column, select, table  # noqa: E402

from smile_dremio_gateway.exceptions import StoreConnectionError, StoreError  # noqa: E402
from smile_dremio_gateway.models import Request, Sample  # noqa: E402
from smile_dremio_gateway.store import StoreTables  # noqa: E402
from smile_dremio_gateway.store.flight import (  # noqa: E402
    FlightStoreClient,
    render_sql,
)


def request(request_id: str, **extra: Any) -> Request:
    return Request.model_validate({"igoRequestId": request_id, **extra})


def sample(request_id: str, name: str, barcode: str | None = None) -> Sample:
    return Sample.model_validate(
        {
            "sampleName": name,
            "cmoSampleName": f"C-{name}",
            "barcodeId": barcode,
            "additionalProperties": {"igoRequestId": request_id},
        }
    )


class TestRenderSql:
    def test_literals_are_escaped(self):
        tables = StoreTables("requests", "samples", catalog="s3.lake")

        sql = render_sql(tables.insert_request(request("REQ001", pi="O'Brien")))

        assert sql.startswith("INSERT INTO s3.lake.requests")
        assert "'REQ001'" in sql
        assert "O''Brien" in sql

    def test_multi_row_sample_insert(self):
        tables = StoreTables("requests", "samples", catalog="s3.lake")

        sql = render_sql(
            tables.insert_samples("REQ001", [sample("", "S1"), sample("", "S2")])
        )

        assert sql.startswith("INSERT INTO s3.lake.samples")
        assert sql.count("'REQ001'") == 2
        assert "'S1'" in sql and "'S2'" in sql
        assert "), (" in sql

    def test_update_with_null_barcode(self):
        tables = StoreTables("requests", "samples", barcode_column="BARCODE_ID")

        sql = render_sql(
            tables.update_sample(sample("REQ001", "S1", "BC1"), sample("REQ001", "S1"))
        )

        assert sql.startswith("UPDATE samples SET")
        assert "\"BARCODE_ID\" IS NULL" in sql
        assert "'BC1'" in sql

    def test_delete_samples(self):
        sql = render_sql(StoreTables("requests", "samples").delete_samples("REQ001"))

        assert sql.startswith("DELETE FROM samples WHERE")
        assert sql.endswith("\"IGO_REQUEST_ID\" = 'REQ001'")


# ── client ───────────────────────────────────────────────────────────


class FakeReader:
    def __init__(self, result: Any) -> None:
        self._result = result

    def read_all(self) -> Any:
        return self._result


class FakeFlightClient:
    """Records calls the way pyarrow's FlightClient would receive them."""

    instances: list[FakeFlightClient] = []
    auth_error: Exception | None = None
    query_error: Exception | None = None
    result: Any = None

    def __init__(self, location: str) -> None:
        self.location = location
        self.queries: list[bytes] = []
        self.closed = False
        FakeFlightClient.instances.append(self)

    def authenticate_basic_token(self, username, password, options):
        if self.auth_error is not None:
            raise self.auth_error
        return (b"authorization", f"Bearer {username}".encode())

    def get_flight_info(self, descriptor, options):
        self.queries.append(descriptor.command)
        if self.query_error is not None:
            raise self.query_error
        return SimpleNamespace(endpoints=[SimpleNamespace(ticket="ticket-1")])

    def do_get(self, ticket, options):
        assert ticket == "ticket-1"
        return FakeReader(self.result)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_flight(monkeypatch):
    FakeFlightClient.instances = []
    FakeFlightClient.auth_error = None
    FakeFlightClient.query_error = None
    FakeFlightClient.result = pa.table({"Records": [2]})
    monkeypatch.setattr(flight, "FlightClient", FakeFlightClient)
    return FakeFlightClient


@pytest.fixture
def client() -> FlightStoreClient:
    return FlightStoreClient(
        "dremio.example.org", "svc", "secret", routing_tag="gateway"
    )


class TestFlightStoreClient:
    @pytest.mark.asyncio
    async def test_executes_rendered_statement(self, fake_flight, client):
        tables = StoreTables("requests", "samples", catalog="s3.lake")

        async with client.connect() as conn:
            rows = await conn.execute(
                tables.insert_samples("REQ001", [sample("", "S1"), sample("", "S2")])
            )

        fake = fake_flight.instances[0]
        assert fake.location == "grpc+tcp://dremio.example.org:32010"
        assert rows == [{"Records": 2}]
        assert fake.queries[0].startswith(b"INSERT INTO s3.lake.samples")
        assert fake.closed

    @pytest.mark.asyncio
    async def test_unavailable_server_is_a_connection_error(self, fake_flight, client):
        fake_flight.query_error = flight.FlightUnavailableError("down")

        async with client.connect() as conn:
            with pytest.raises(StoreConnectionError, match="down"):
                await conn.execute(StoreTables("r", "s").select_request("REQ001"))

    @pytest.mark.asyncio
    async def test_query_failure_is_a_store_error(self, fake_flight, client):
        fake_flight.query_error = flight.FlightServerError("syntax error")

        async with client.connect() as conn:
            with pytest.raises(StoreError, match="syntax error"):
                await conn.execute(StoreTables("r", "s").delete_samples("REQ001"))

    @pytest.mark.asyncio
    async def test_unrenderable_statement_is_a_store_error(self, fake_flight, client):
        # no literal form exists for an arbitrary object
        stmt = select(column("x")).select_from(table("t")).where(
            column("x") == bindparam("x", value=object())
        )

        async with client.connect() as conn:
            with pytest.raises(StoreError, match="Cannot render"):
                await conn.execute(stmt)

        assert fake_flight.instances[0].queries == []

    @pytest.mark.asyncio
    async def test_failed_authentication(self, fake_flight, client):
        fake_flight.auth_error = flight.FlightUnauthenticatedError("bad password")

        with pytest.raises(StoreConnectionError, match="Cannot authenticate"):
            async with client.connect():
                pass

        assert fake_flight.instances[0].closed
        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check(self, fake_flight, client):
        assert await client.health_check() is True
        assert fake_flight.instances[0].closed

    def test_rejects_empty_host(self):
        with pytest.raises(ValueError):
            FlightStoreClient("", "svc", "secret")
