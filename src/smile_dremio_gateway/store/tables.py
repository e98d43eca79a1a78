"""Table layout and statement builders for the request and sample tables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import String, and_, column, delete, insert, select, table, update
from sqlalchemy.sql.elements import quoted_name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement, Delete, Insert, Select, Update
    from sqlalchemy.sql.expression import TableClause

    from ..models import Request, Sample

REQUEST_ID = "IGO_REQUEST_ID"
REQUEST_JSON = "REQUEST_JSON"
SAMPLE_NAME = "IGO_SAMPLE_NAME"
CMO_SAMPLE_NAME = "CMO_SAMPLE_NAME"
SAMPLE_JSON = "SAMPLE_JSON"


class StoreTables:
    """Builds parameterized statements against the request and sample tables.

    ``catalog`` is the namespace both tables live in (a Dremio space or
    object-store path such as ``s3.lake``); it is rendered verbatim so dotted
    paths keep their meaning. When ``barcode_column`` is set the sample key
    gains that column as a fourth, nullable part.
    """

    def __init__(
        self,
        request_table: str,
        sample_table: str,
        *,
        catalog: str | None = None,
        barcode_column: str | None = None,
    ) -> None:
        schema = quoted_name(catalog, quote=False) if catalog else None
        self.barcode_column = barcode_column
        self.requests: TableClause = table(
            request_table,
            column(REQUEST_ID, String),
            column(REQUEST_JSON, String),
            schema=schema,
        )
        sample_columns = [
            column(REQUEST_ID, String),
            column(SAMPLE_NAME, String),
            column(CMO_SAMPLE_NAME, String),
        ]
        if barcode_column:
            sample_columns.append(column(barcode_column, String))
        sample_columns.append(column(SAMPLE_JSON, String))
        self.samples: TableClause = table(sample_table, *sample_columns, schema=schema)

    # -- requests -------------------------------------------------------

    def select_request(self, request_id: str) -> Select[Any]:
        c = self.requests.c
        return select(c[REQUEST_ID]).where(c[REQUEST_ID] == request_id)

    def insert_request(self, request: Request) -> Insert:
        return insert(self.requests).values(
            {
                REQUEST_ID: request.igo_request_id,
                REQUEST_JSON: request.without_samples().to_document(),
            }
        )

    def update_request(self, new: Request, old: Request) -> Update:
        c = self.requests.c
        return (
            update(self.requests)
            .where(c[REQUEST_ID] == old.igo_request_id)
            .values(
                {
                    REQUEST_ID: new.igo_request_id,
                    REQUEST_JSON: new.without_samples().to_document(),
                }
            )
        )

    def delete_request(self, request_id: str) -> Delete:
        c = self.requests.c
        return delete(self.requests).where(c[REQUEST_ID] == request_id)

    # -- samples --------------------------------------------------------

    def sample_key(self, sample: Sample, request_id: str | None = None) -> dict[str, Any]:
        """Composite key of *sample* as a column -> value mapping."""
        key: dict[str, Any] = {
            REQUEST_ID: request_id if request_id is not None else sample.request_id,
            SAMPLE_NAME: sample.sample_name,
            CMO_SAMPLE_NAME: sample.cmo_sample_name,
        }
        if self.barcode_column:
            key[self.barcode_column] = sample.barcode_id
        return key

    def _sample_row(self, sample: Sample, request_id: str | None = None) -> dict[str, Any]:
        row = self.sample_key(sample, request_id)
        row[SAMPLE_JSON] = sample.to_document()
        return row

    def insert_samples(self, request_id: str, samples: Sequence[Sample]) -> Insert:
        """One multi-row insert of *samples*, all owned by *request_id*."""
        return insert(self.samples).values(
            [self._sample_row(s, request_id) for s in samples]
        )

    def insert_sample(self, sample: Sample) -> Insert:
        return insert(self.samples).values(self._sample_row(sample))

    def update_sample(self, new: Sample, old: Sample) -> Update:
        return (
            update(self.samples)
            .where(self._match(self.sample_key(old)))
            .values(self._sample_row(new))
        )

    def delete_samples(self, request_id: str) -> Delete:
        c = self.samples.c
        return delete(self.samples).where(c[REQUEST_ID] == request_id)

    def _match(self, key: dict[str, Any]) -> ColumnElement[bool]:
        # ``col == None`` renders IS NULL, which keeps the optional barcode
        # part of the key NULL-safe.
        c = self.samples.c
        return and_(*(c[name] == value for name, value in key.items()))
