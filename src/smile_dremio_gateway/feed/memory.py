"""In-memory feed client for testing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..ports.feed import IFeedClient, IFeedMessage
from .events import encode_payload

if TYPE_CHECKING:
    from ..ports.feed import FeedHandler


@dataclass
class InMemoryFeedMessage(IFeedMessage):
    """Message that records how it was settled."""

    subject: str
    data: bytes
    deliveries: int = 1
    acked: bool = False
    naked: bool = False

    async def ack(self) -> None:
        self.acked = True

    async def nak(self) -> None:
        self.naked = True

    @property
    def delivery_count(self) -> int:
        return self.deliveries

    @property
    def settled(self) -> bool:
        return self.acked or self.naked


@dataclass
class InMemoryFeedClient(IFeedClient):
    """Feed client whose ``publish()`` awaits the subscribed handler directly.

    Because the handler blocks while the dispatcher's queue is full,
    ``publish()`` experiences the same back-pressure a real feed would.
    """

    handler: FeedHandler | None = None
    consumer: str | None = None
    subject: str | None = None
    closed: bool = False
    messages: list[InMemoryFeedMessage] = field(default_factory=list)

    async def subscribe(self, consumer: str, subject: str, handler: FeedHandler) -> None:
        self.consumer = consumer
        self.subject = subject
        self.handler = handler

    async def shutdown(self) -> None:
        self.closed = True

    async def publish_raw(
        self, subject: str, data: bytes, *, deliveries: int = 1
    ) -> InMemoryFeedMessage:
        """Deliver raw bytes on *subject* and return the message."""
        if self.handler is None:
            raise RuntimeError("publish before subscribe")
        message = InMemoryFeedMessage(subject=subject, data=data, deliveries=deliveries)
        self.messages.append(message)
        await self.handler(message)
        return message

    async def publish(
        self, subject: str, document: Any, *, deliveries: int = 1
    ) -> InMemoryFeedMessage:
        """Deliver *document* encoded as SMILE does."""
        return await self.publish_raw(
            subject, encode_payload(document), deliveries=deliveries
        )
