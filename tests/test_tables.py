"""Tests for StoreTables statement builders."""

from __future__ import annotations

import json

from smile_dremio_gateway.models import Request, Sample
from smile_dremio_gateway.store import StoreTables


def request(request_id: str, **extra) -> Request:
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


class TestStatements:
    def test_values_are_bound_not_inlined(self):
        tables = StoreTables("requests", "samples")

        compiled = tables.select_request("REQ'; DROP TABLE requests; --").compile()

        assert "DROP TABLE" not in str(compiled)
        assert "REQ'; DROP TABLE requests; --" in compiled.params.values()

    def test_insert_request_strips_samples(self):
        tables = StoreTables("requests", "samples")
        req = Request.model_validate(
            {"igoRequestId": "REQ001", "samples": [{"sampleName": "S1"}]}
        )

        params = tables.insert_request(req).compile().params

        assert params["IGO_REQUEST_ID"] == "REQ001"
        assert json.loads(params["REQUEST_JSON"])["samples"] == []

    def test_sample_key_uses_owner_when_given(self):
        tables = StoreTables("requests", "samples")

        key = tables.sample_key(sample("", "S1"), "REQ001")

        assert key == {
            "IGO_REQUEST_ID": "REQ001",
            "IGO_SAMPLE_NAME": "S1",
            "CMO_SAMPLE_NAME": "C-S1",
        }

    def test_barcode_column_joins_the_key(self):
        tables = StoreTables("requests", "samples", barcode_column="BARCODE_ID")

        key = tables.sample_key(sample("REQ001", "S1", "BC7"))

        assert key["BARCODE_ID"] == "BC7"
        assert "BARCODE_ID" in tables.samples.c

    def test_null_barcode_matches_with_is_null(self):
        tables = StoreTables("requests", "samples", barcode_column="BARCODE_ID")

        stmt = tables.update_sample(sample("REQ001", "S1"), sample("REQ001", "S1"))

        assert "IS NULL" in str(stmt.compile())

    def test_catalog_is_rendered_unquoted(self):
        tables = StoreTables("requests", "samples", catalog="s3.lake")

        sql = str(tables.delete_request("REQ001").compile())

        assert "s3.lake.requests" in sql

