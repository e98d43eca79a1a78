"""SyncEngine — add/update requests and samples across the two store tables."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import (
    InvalidVersionsError,
    NotFoundError,
    PartialWriteError,
    UpdateTargetNotFoundError,
)
from ..ports.store import RECORDS_COLUMN
from ..store.tables import REQUEST_ID

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.sql import Executable

    from ..metrics import SyncMetrics
    from ..models import Request, Sample
    from ..ports.store import IStoreClient, IStoreConnection
    from ..store.tables import StoreTables

logger = logging.getLogger("smile_dremio_gateway.sync")


class SyncEngine:
    """Applies feed events to the request and sample tables.

    Every operation acquires its own store connection and releases it on every
    exit path. The tables are not transactional: an add replaces rows step by
    step and removes the samples it inserted when a later step fails.
    """

    def __init__(
        self,
        store: IStoreClient,
        tables: StoreTables,
        *,
        metrics: SyncMetrics | None = None,
    ) -> None:
        self._store = store
        self._tables = tables
        self._metrics = metrics

    # ── add ──────────────────────────────────────────────────────────

    async def add_request(self, request: Request) -> None:
        """Store *request* and its samples, replacing any stored version.

        Samples are inserted before the request row. If either insert fails,
        the samples inserted for this id are deleted again and
        :class:`PartialWriteError` is raised.

        Readers may briefly see the request without samples, or no request
        at all, while the replace is in progress.
        """
        request_id = request.igo_request_id
        async with self._store.connect() as conn:
            existing = await conn.execute(self._tables.select_request(request_id))
            if existing:
                logger.info("Replacing stored request %s", request_id)
                await conn.execute(self._tables.delete_request(request_id))
                await conn.execute(self._tables.delete_samples(request_id))

            if request.samples:
                try:
                    await conn.execute(
                        self._tables.insert_samples(request_id, request.samples)
                    )
                except Exception as e:  # noqa: BLE001
                    await self._compensate(conn, request_id, "samples", e)

            try:
                await conn.execute(self._tables.insert_request(request))
            except Exception as e:  # noqa: BLE001
                await self._compensate(conn, request_id, "request", e)

        logger.info(
            "Added request %s with %d sample(s)", request_id, len(request.samples)
        )

    async def _compensate(
        self,
        conn: IStoreConnection,
        request_id: str,
        stage: str,
        cause: Exception,
    ) -> None:
        """Delete the samples stored for *request_id*, then raise PartialWriteError."""
        logger.warning(
            "Inserting %s for request %s failed (%s), removing its samples",
            stage,
            request_id,
            cause,
        )
        compensated = True
        try:
            await conn.execute(self._tables.delete_samples(request_id))
        except Exception:  # noqa: BLE001
            compensated = False
            logger.exception(
                "Could not remove samples of request %s; they are orphaned",
                request_id,
            )
        if self._metrics is not None:
            self._metrics.compensations.labels(
                stage=stage, outcome="ok" if compensated else "failed"
            ).inc()
        raise PartialWriteError(request_id, stage, compensated=compensated) from cause

    # ── update ───────────────────────────────────────────────────────

    async def update_request(self, versions: Sequence[Request]) -> int:
        """Apply ``[new, old]``: rewrite the row keyed by old's id with new's values.

        Returns the affected-row count.
        """
        if len(versions) != 2:
            raise InvalidVersionsError("request", "exactly two", len(versions))
        new, old = versions
        async with self._store.connect() as conn:
            count = await self._execute_update(
                conn,
                self._tables.update_request(new, old),
                table="request",
                key={REQUEST_ID: old.igo_request_id},
            )
        logger.info(
            "Updated request %s -> %s", old.igo_request_id, new.igo_request_id
        )
        return count

    async def update_sample(self, versions: Sequence[Sample]) -> int:
        """Apply sample versions, newest first.

        ``[new, old]`` rewrites the row matching old's composite key. A lone
        ``[new]`` has no stored version to key off (e.g. it failed validation
        earlier), so it is inserted if its request exists.

        Returns the affected-row count.
        """
        if not versions:
            raise InvalidVersionsError("sample", "one or two", 0)
        if len(versions) == 1:
            return await self._insert_orphan_sample(versions[0])

        new, old = versions[0], versions[1]
        key = self._tables.sample_key(old)
        async with self._store.connect() as conn:
            count = await self._execute_update(
                conn,
                self._tables.update_sample(new, old),
                table="sample",
                key=key,
            )
        logger.info(
            "Updated sample %s/%s of request %s",
            old.sample_name,
            old.cmo_sample_name,
            old.request_id,
        )
        return count

    async def _insert_orphan_sample(self, sample: Sample) -> int:
        request_id = sample.request_id
        async with self._store.connect() as conn:
            owners = await conn.execute(self._tables.select_request(request_id))
            if not owners:
                raise NotFoundError(request_id)
            await conn.execute(self._tables.insert_sample(sample))
        logger.info(
            "Inserted sample %s into request %s (no prior version)",
            sample.sample_name,
            request_id,
        )
        return 1

    async def _execute_update(
        self,
        conn: IStoreConnection,
        statement: Executable,
        *,
        table: str,
        key: dict[str, object],
    ) -> int:
        rows = await conn.execute(statement)
        count = sum(int(row.get(RECORDS_COLUMN) or 0) for row in rows)
        if count == 0:
            raise UpdateTargetNotFoundError(table, key)
        if count > 1:
            # Keys are assumed unique; duplicates are reported, not rejected.
            logger.warning(
                "Update of %s matched %d rows for key %r", table, count, key
            )
        return count
