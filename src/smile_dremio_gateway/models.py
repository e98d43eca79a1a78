"""Request and sample records as published on the SMILE feed.

Only the fields the gateway keys on are modelled; everything else is kept
verbatim (``extra="allow"``) and round-trips into the stored JSON documents.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Document(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_document(self) -> str:
        """Serialize to the JSON document stored in the ``*_JSON`` columns."""
        return self.model_dump_json(by_alias=True)


class SampleProperties(_Document):
    """The ``additionalProperties`` block of a sample."""

    igo_request_id: str = Field(default="", alias="igoRequestId")


class Sample(_Document):
    """A single sample; keyed by request id, names and optional barcode."""

    sample_name: str = Field(default="", alias="sampleName")
    cmo_sample_name: str = Field(default="", alias="cmoSampleName")
    barcode_id: str | None = Field(default=None, alias="barcodeId")
    additional_properties: SampleProperties = Field(
        default_factory=SampleProperties, alias="additionalProperties"
    )

    @property
    def request_id(self) -> str:
        return self.additional_properties.igo_request_id


class Request(_Document):
    """A request and the samples published with it."""

    igo_request_id: str = Field(..., alias="igoRequestId")
    samples: list[Sample] = Field(default_factory=list)

    def without_samples(self) -> Request:
        """Copy with the embedded samples cleared.

        Samples live only in the sample table, so the stored request document
        never carries them.
        """
        return self.model_copy(update={"samples": []})
