"""Feed side: typed events, subject routing and the in-memory client.

The NATS JetStream client lives in :mod:`.jetstream` and needs the
``[nats]`` extra.
"""

from __future__ import annotations

from .adapter import SmileFeedAdapter
from .events import EventCategory, FeedEvent, decode_event, encode_payload
from .memory import InMemoryFeedClient, InMemoryFeedMessage

__all__ = [
    "EventCategory",
    "FeedEvent",
    "InMemoryFeedClient",
    "InMemoryFeedMessage",
    "SmileFeedAdapter",
    "decode_event",
    "encode_payload",
]
