"""Dispatcher — consume typed feed events and fan them out to sync tasks."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from .dead_letter import DeadLetterHandler
from .exceptions import (
    GatewayError,
    InvalidVersionsError,
    NotFoundError,
    UpdateTargetNotFoundError,
)
from .feed.events import EventCategory
from .retry import RetryPolicy
from .sync.locking import KeyedLock

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .feed.adapter import SmileFeedAdapter
    from .feed.events import FeedEvent
    from .metrics import SyncMetrics
    from .sync.engine import SyncEngine

logger = logging.getLogger("smile_dremio_gateway.dispatcher")

#: Depth of each category queue; back-pressure only, no buffering.
QUEUE_DEPTH = 1

# Redelivering these cannot change the outcome.
_FINAL_ERRORS = (UpdateTargetNotFoundError, NotFoundError, InvalidVersionsError)


class DispatcherState(str, Enum):
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"


class FailurePolicy(str, Enum):
    """What happens to a message whose synchronization failed.

    ``ack``: acknowledge anyway; the failure is only logged.
    ``nak``: ask the feed to redeliver, until ``max_deliveries`` is reached,
    then dead-letter and acknowledge. Failures that redelivery cannot fix
    (target not found, bad version count) are acknowledged directly.
    ``dead_letter``: hand the event to the dead-letter handler, then acknowledge.
    """

    ACK = "ack"
    NAK = "nak"
    DEAD_LETTER = "dead_letter"


class Dispatcher:
    """Runs the gateway's control loop.

    ``run()`` subscribes once, then waits on the three category queues and the
    stop event. Every dequeued event becomes one task that calls the sync
    engine, logs any failure and settles the message according to the failure
    policy. When the stop event is set, no further events are taken; the
    dispatcher waits for all running tasks, then shuts down the feed.

    At most ``max_concurrency`` tasks run at once; while the ceiling is
    reached the loop stops dequeuing, which pushes back on the feed. Tasks
    touching the same request identifier run one after the other.
    """

    def __init__(
        self,
        feed: SmileFeedAdapter,
        engine: SyncEngine,
        *,
        max_concurrency: int | None = 32,
        failure_policy: FailurePolicy = FailurePolicy.ACK,
        max_deliveries: int = 5,
        retry_policy: RetryPolicy | None = None,
        dead_letter: DeadLetterHandler | None = None,
        locks: KeyedLock | None = None,
        metrics: SyncMetrics | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if max_deliveries < 1:
            raise ValueError("max_deliveries must be >= 1")
        self._feed = feed
        self._engine = engine
        self._slots = (
            asyncio.Semaphore(max_concurrency) if max_concurrency is not None else None
        )
        self._failure_policy = FailurePolicy(failure_policy)
        self._max_deliveries = max_deliveries
        self._retry_policy = retry_policy or RetryPolicy()
        self._dead_letter = dead_letter or DeadLetterHandler()
        self._locks = locks or KeyedLock()
        self._metrics = metrics
        self._operations: dict[EventCategory, Callable[[FeedEvent], Awaitable[Any]]] = {
            EventCategory.NEW_REQUEST: lambda e: self._engine.add_request(e.records[0]),
            EventCategory.UPDATE_REQUEST: lambda e: self._engine.update_request(
                e.records
            ),
            EventCategory.UPDATE_SAMPLE: lambda e: self._engine.update_sample(
                e.records
            ),
        }
        self._tasks: dict[EventCategory, set[asyncio.Task[None]]] = {
            category: set() for category in EventCategory
        }
        self.state = DispatcherState.LISTENING

    @property
    def in_flight(self) -> int:
        return sum(len(tasks) for tasks in self._tasks.values())

    async def run(self, stop: asyncio.Event) -> None:
        """Process events until *stop* is set, then drain and shut down."""
        if self.state is not DispatcherState.LISTENING:
            raise RuntimeError(f"Dispatcher cannot run from state {self.state.value}")
        logger.info("Starting up SMILE consumer...")
        queues: dict[EventCategory, asyncio.Queue[FeedEvent]] = {
            category: asyncio.Queue(maxsize=QUEUE_DEPTH) for category in EventCategory
        }
        await self._feed.subscribe(queues)
        logger.info("SMILE consumer running...")
        try:
            await self._listen(queues, stop)
        finally:
            self.state = DispatcherState.DRAINING
            await self._drain()
            await self._feed.shutdown()
            self.state = DispatcherState.STOPPED
            logger.info("Dispatcher stopped")

    async def _listen(
        self,
        queues: dict[EventCategory, asyncio.Queue[FeedEvent]],
        stop: asyncio.Event,
    ) -> None:
        getters = {
            category: asyncio.ensure_future(queue.get())
            for category, queue in queues.items()
        }
        stopper = asyncio.ensure_future(stop.wait())
        try:
            while True:
                done, _ = await asyncio.wait(
                    [*getters.values(), stopper],
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for category, getter in getters.items():
                    if getter in done:
                        await self._dispatch(category, getter.result())
                        getters[category] = asyncio.ensure_future(
                            queues[category].get()
                        )
                if stopper in done:
                    logger.info("Stop requested, no longer accepting events")
                    return
        finally:
            stopper.cancel()
            for category, getter in getters.items():
                if getter.done() and not getter.cancelled():
                    # taken off the queue while another event was being dispatched
                    await self._dispatch(category, getter.result())
                else:
                    getter.cancel()

    async def _dispatch(self, category: EventCategory, event: FeedEvent) -> None:
        if self._slots is not None:
            await self._slots.acquire()
        logger.info("Processing %s: %s", category.value, event.describe())
        task = asyncio.create_task(
            self._process(category, event),
            name=f"{category.value}:{event.describe()}",
        )
        group = self._tasks[category]
        group.add(task)
        task.add_done_callback(group.discard)

    async def _drain(self) -> None:
        for category in EventCategory:
            pending = list(self._tasks[category])
            if pending:
                logger.info(
                    "Waiting for %d %s task(s) to finish", len(pending), category.value
                )
                await asyncio.gather(*pending, return_exceptions=True)

    # ── task body ────────────────────────────────────────────────────

    async def _process(self, category: EventCategory, event: FeedEvent) -> None:
        operation = category.value
        start = time.monotonic()
        error: Exception | None = None
        if self._metrics is not None:
            self._metrics.in_flight.labels(operation=operation).inc()
        try:
            try:
                async with self._locks.hold(event.request_ids):
                    await self._retry_policy.run(
                        lambda: self._operations[category](event),
                        label=f"{operation} {event.describe()}",
                    )
            except GatewayError as e:
                error = e
                logger.error("Error processing %s %s: %s", operation, event.describe(), e)
            except Exception as e:  # noqa: BLE001
                error = e
                logger.exception(
                    "Unexpected error processing %s %s", operation, event.describe()
                )
            await self._settle(event, error)
        finally:
            self._record(operation, event, error, time.monotonic() - start)
            if self._slots is not None:
                self._slots.release()

    async def _settle(self, event: FeedEvent, error: Exception | None) -> None:
        """Acknowledge, redeliver or dead-letter the event's message."""
        try:
            if error is None or self._failure_policy is FailurePolicy.ACK:
                await self._feed.ack(event)
            elif self._failure_policy is FailurePolicy.DEAD_LETTER:
                await self._dead_letter_and_ack(event, error)
            elif isinstance(error, _FINAL_ERRORS):
                await self._feed.ack(event)
            elif event.message.delivery_count >= self._max_deliveries:
                await self._dead_letter_and_ack(event, error)
            else:
                logger.info(
                    "Requesting redelivery of %s (delivery %d of %d)",
                    event.describe(),
                    event.message.delivery_count,
                    self._max_deliveries,
                )
                await self._feed.nak(event)
        except Exception:  # noqa: BLE001
            logger.exception("Could not settle message for %s", event.describe())

    async def _dead_letter_and_ack(self, event: FeedEvent, error: Exception) -> None:
        try:
            await self._dead_letter.route(event, str(error), error)
        except Exception:  # noqa: BLE001
            logger.exception("Dead-letter handler failed for %s", event.describe())
        await self._feed.ack(event)

    def _record(
        self,
        operation: str,
        event: FeedEvent,
        error: Exception | None,
        seconds: float,
    ) -> None:
        outcome = "success" if error is None else type(error).__name__
        if self._metrics is not None:
            self._metrics.in_flight.labels(operation=operation).dec()
            self._metrics.observe_sync(
                operation, "success" if error is None else "error", seconds
            )
        entry = {
            "operation": operation,
            "outcome": outcome,
            "request_ids": event.request_ids,
            "duration_ms": round(seconds * 1000, 2),
        }
        logger.info(json.dumps(entry))
