"""Tests for DeadLetterHandler."""

from __future__ import annotations

import json
import logging

import pytest

from smile_dremio_gateway.dead_letter import DeadLetterHandler
from smile_dremio_gateway.feed import EventCategory, InMemoryFeedMessage, decode_event


def event():
    payload = json.dumps(json.dumps({"igoRequestId": "REQ001"})).encode()
    message = InMemoryFeedMessage(subject="smile.new-request", data=payload)
    return decode_event(EventCategory.NEW_REQUEST, message)


@pytest.mark.asyncio
async def test_logs_payload_without_callback(caplog):
    handler = DeadLetterHandler()

    with caplog.at_level(logging.ERROR, logger="smile_dremio_gateway.dead_letter"):
        await handler.route(event(), "store unavailable")

    assert "REQ001" in caplog.text
    assert "store unavailable" in caplog.text


@pytest.mark.asyncio
async def test_callback_receives_event_and_reason():
    received = []

    async def on_dead_letter(evt, reason, exc):
        received.append((evt.request_ids, reason, exc))

    handler = DeadLetterHandler(on_dead_letter=on_dead_letter)
    error = RuntimeError("boom")

    await handler.route(event(), "boom", error)

    assert received == [(["REQ001"], "boom", error)]
