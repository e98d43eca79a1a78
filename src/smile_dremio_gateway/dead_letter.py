"""DeadLetterHandler — hand off events whose synchronization keeps failing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from .feed.events import FeedEvent

logger = logging.getLogger("smile_dremio_gateway.dead_letter")


class DeadLetterHandler:
    """Routes events that failed for good to a dead-letter destination.

    Caller provides an async callback that receives the event, the failure
    reason and the exception; typically it republishes the raw payload to a
    DLQ subject or stores it for inspection. Without a callback the event is
    only logged, with its raw payload, at ERROR level.
    """

    def __init__(
        self,
        on_dead_letter: (
            Callable[[FeedEvent, str, BaseException | None], Coroutine[Any, Any, None]]
            | None
        ) = None,
    ) -> None:
        self._on_dead_letter = on_dead_letter

    async def route(
        self,
        event: FeedEvent,
        reason: str,
        exception: BaseException | None = None,
    ) -> None:
        if self._on_dead_letter is not None:
            await self._on_dead_letter(event, reason, exception)
            return
        logger.error(
            "Dead-lettered %s event %s on %s: %s; payload=%r",
            event.category.value,
            event.describe(),
            event.message.subject,
            reason,
            event.message.data,
        )
