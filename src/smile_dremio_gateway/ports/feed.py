from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IFeedMessage(Protocol):
    """
    A raw message delivered by the feed.

    Adapters wrap the transport's message type so that redelivery metadata is
    exposed uniformly through ``delivery_count``.
    """

    subject: str
    data: bytes

    async def ack(self) -> None:
        """Acknowledge the message so it is not delivered again."""
        ...

    async def nak(self) -> None:
        """Negatively acknowledge the message, asking for redelivery."""
        ...

    @property
    def delivery_count(self) -> int:
        """How many times this message has been delivered (1 on first delivery)."""
        ...


FeedHandler = Callable[[IFeedMessage], Coroutine[Any, Any, None]]


@runtime_checkable
class IFeedClient(Protocol):
    """
    Port for the pub/sub feed the gateway consumes.

    Infrastructure modules provide concrete adapters.
    """

    async def subscribe(
        self,
        consumer: str,
        subject: str,
        handler: FeedHandler,
    ) -> None:
        """
        Subscribe *handler* to *subject* as the durable *consumer*.

        Args:
            consumer: Durable consumer name; redelivery is tracked per consumer.
            subject: Subject (or wildcard) to subscribe to.
            handler: Async callable invoked for each message.

        Raises:
            FeedConnectionError: If the subscription cannot be created.
        """
        ...

    async def shutdown(self) -> None:
        """Close the subscription and the underlying connection."""
        ...
