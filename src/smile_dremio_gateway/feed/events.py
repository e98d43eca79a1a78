"""Typed feed events and payload decoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from ..exceptions import DecodeError
from ..models import Request, Sample

if TYPE_CHECKING:
    from ..ports.feed import IFeedMessage


class EventCategory(str, Enum):
    """The three kinds of event the gateway synchronizes."""

    NEW_REQUEST = "new_request"
    UPDATE_REQUEST = "update_request"
    UPDATE_SAMPLE = "update_sample"


Records = list[Request] | list[Sample]

_DECODERS: dict[EventCategory, TypeAdapter[Any]] = {
    EventCategory.NEW_REQUEST: TypeAdapter(Request),
    EventCategory.UPDATE_REQUEST: TypeAdapter(list[Request]),
    EventCategory.UPDATE_SAMPLE: TypeAdapter(list[Sample]),
}


@dataclass(frozen=True)
class FeedEvent:
    """A decoded event together with the message that carried it.

    ``records`` holds one request for NEW_REQUEST, the ``[new, old]`` pair for
    UPDATE_REQUEST and the sample versions (newest first) for UPDATE_SAMPLE.
    """

    category: EventCategory
    records: Records
    message: IFeedMessage

    @property
    def request_ids(self) -> list[str]:
        """Every request identifier this event reads or writes."""
        ids: list[str] = []
        for record in self.records:
            if isinstance(record, Request):
                ids.append(record.igo_request_id)
            else:
                ids.append(record.request_id)
        return ids

    def describe(self) -> str:
        """Short label for log lines."""
        if not self.records:
            return "<empty>"
        first = self.records[0]
        if isinstance(first, Sample):
            return f"{first.request_id}/{first.cmo_sample_name or first.sample_name}"
        return first.igo_request_id


def unquote(subject: str, data: bytes) -> str:
    """Strip the JSON string quoting SMILE wraps its documents in."""
    try:
        text = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(subject, f"payload is not a quoted string: {e}") from e
    if not isinstance(text, str):
        raise DecodeError(subject, "payload is not a quoted string")
    return text


def decode_event(category: EventCategory, message: IFeedMessage) -> FeedEvent:
    """Decode *message* into a :class:`FeedEvent` of *category*.

    Raises:
        DecodeError: If the payload is not a quoted JSON document of the
            shape the category expects.
    """
    document = unquote(message.subject, message.data)
    try:
        decoded = _DECODERS[category].validate_json(document)
    except ValidationError as e:
        raise DecodeError(
            message.subject, f"invalid {category.value} document: {e}"
        ) from e
    records = [decoded] if category is EventCategory.NEW_REQUEST else decoded
    return FeedEvent(category=category, records=records, message=message)


def encode_payload(document: Any) -> bytes:
    """Encode *document* the way SMILE publishes it (JSON inside a JSON string)."""
    if hasattr(document, "model_dump"):
        document = document.model_dump(mode="json", by_alias=True)
    elif isinstance(document, list):
        document = [
            d.model_dump(mode="json", by_alias=True) if hasattr(d, "model_dump") else d
            for d in document
        ]
    return json.dumps(json.dumps(document)).encode("utf-8")
