"""RetryPolicy — in-task retries of transient connection failures."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, TypeVar

from .exceptions import GatewayConnectionError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger("smile_dremio_gateway.retry")


class RetryPolicy:
    """Re-runs a synchronization step while it fails with a retryable error.

    Only exceptions in ``retry_on`` (connection failures by default) are
    retried; everything else, business failures included, propagates on the
    first attempt. ``max_attempts=1`` disables retrying. The pause before
    attempt *n + 1* is ``base_delay * 2 ** (n - 1)``, capped at ``max_delay``
    and, with ``jitter``, scaled by a random factor between 0.5 and 1.5.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 1,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = True,
        retry_on: tuple[type[BaseException], ...] = (GatewayConnectionError,),
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if min(base_delay, max_delay) < 0:
            raise ValueError("delays must not be negative")
        if base_delay > max_delay:
            raise ValueError("base_delay must not exceed max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.retry_on = retry_on

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after the failed *attempt* (1-based)."""
        if attempt < 1:
            return 0.0
        pause = min(self.base_delay * 2 ** (attempt - 1), self.max_delay)
        if self.jitter:
            pause *= random.uniform(0.5, 1.5)  # noqa: S311
        return pause

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str) -> T:
        """Await ``operation()``, retrying retryable failures.

        Raises the last failure once ``max_attempts`` is used up.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                pause = self.backoff(attempt)
                logger.warning(
                    "Attempt %d/%d of %s failed (%s), retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    label,
                    e,
                    pause,
                )
                if pause > 0:
                    await asyncio.sleep(pause)
                attempt += 1
