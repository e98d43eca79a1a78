"""SmileFeedAdapter — route raw feed messages into typed event queues."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import DecodeError
from .events import EventCategory, FeedEvent, decode_event

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping

    from ..metrics import SyncMetrics
    from ..ports.feed import IFeedClient, IFeedMessage

logger = logging.getLogger("smile_dremio_gateway.feed")


class SmileFeedAdapter:
    """Subscribes once to the SMILE subject and classifies each message.

    A message whose subject equals one of the three filters is decoded and put
    on that category's queue (waiting while the queue is full). Messages
    matching no filter are acknowledged and dropped. Messages that fail to
    decode are logged and left unacknowledged so the feed redelivers them.
    """

    def __init__(
        self,
        client: IFeedClient,
        *,
        consumer: str,
        subject: str,
        new_request_filter: str,
        update_request_filter: str,
        update_sample_filter: str,
        metrics: SyncMetrics | None = None,
    ) -> None:
        self._client = client
        self._consumer = consumer
        self._subject = subject
        self._routes: dict[str, EventCategory] = {
            new_request_filter: EventCategory.NEW_REQUEST,
            update_request_filter: EventCategory.UPDATE_REQUEST,
            update_sample_filter: EventCategory.UPDATE_SAMPLE,
        }
        if len(self._routes) != len(EventCategory):
            raise ValueError("The three subject filters must be distinct")
        self._metrics = metrics
        self._queues: Mapping[EventCategory, asyncio.Queue[FeedEvent]] = {}

    async def subscribe(
        self, queues: Mapping[EventCategory, asyncio.Queue[FeedEvent]]
    ) -> None:
        """Start delivering events into *queues* (one per category)."""
        missing = set(EventCategory) - set(queues)
        if missing:
            raise ValueError(f"No queue for {sorted(c.value for c in missing)}")
        self._queues = queues
        await self._client.subscribe(self._consumer, self._subject, self._on_message)
        logger.info(
            "Subscribed %s to %s (filters: %s)",
            self._consumer,
            self._subject,
            ", ".join(self._routes),
        )

    async def _on_message(self, message: IFeedMessage) -> None:
        category = self._routes.get(message.subject)
        if category is None:
            # not interested, ack so it is not delivered again
            await message.ack()
            if self._metrics is not None:
                self._metrics.dropped.inc()
            return
        try:
            event = decode_event(category, message)
        except DecodeError as e:
            logger.error("Error decoding %s message: %s", category.value, e.reason)
            if self._metrics is not None:
                self._metrics.decode_failures.labels(category=category.value).inc()
            return
        await self._queues[category].put(event)

    async def ack(self, event: FeedEvent) -> None:
        await event.message.ack()

    async def nak(self, event: FeedEvent) -> None:
        await event.message.nak()

    async def shutdown(self) -> None:
        await self._client.shutdown()
        logger.info("Feed connection closed")
