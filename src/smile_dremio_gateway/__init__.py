"""smile-dremio-gateway — keep Dremio request and sample tables in step with SMILE.

Consumes request and sample events from the SMILE message feed and applies
them to two analytic tables with replace-on-add and verified updates.
"""

from __future__ import annotations

# ── Dispatch ─────────────────────────────────────────────────────
from .dead_letter import DeadLetterHandler
from .dispatcher import Dispatcher, DispatcherState, FailurePolicy

# ── Errors ───────────────────────────────────────────────────────
from .exceptions import (
    ConfigurationError,
    DecodeError,
    FeedConnectionError,
    GatewayConnectionError,
    GatewayError,
    InvalidVersionsError,
    NotFoundError,
    PartialWriteError,
    StoreConnectionError,
    StoreError,
    SyncError,
    UpdateTargetNotFoundError,
)

# ── Feed ─────────────────────────────────────────────────────────
from .feed import EventCategory, FeedEvent, SmileFeedAdapter
from .metrics import SyncMetrics

# ── Domain ───────────────────────────────────────────────────────
from .models import Request, Sample
from .retry import RetryPolicy

# ── Store & sync ─────────────────────────────────────────────────
from .store import StoreTables
from .sync import KeyedLock, SyncEngine

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DeadLetterHandler",
    "DecodeError",
    "Dispatcher",
    "DispatcherState",
    "EventCategory",
    "FailurePolicy",
    "FeedConnectionError",
    "FeedEvent",
    "GatewayConnectionError",
    "GatewayError",
    "InvalidVersionsError",
    "KeyedLock",
    "NotFoundError",
    "PartialWriteError",
    "Request",
    "RetryPolicy",
    "Sample",
    "SmileFeedAdapter",
    "StoreConnectionError",
    "StoreError",
    "StoreTables",
    "SyncEngine",
    "SyncError",
    "SyncMetrics",
    "UpdateTargetNotFoundError",
    "__version__",
]
