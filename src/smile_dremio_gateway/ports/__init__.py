"""Protocols for the gateway's external collaborators."""

from __future__ import annotations

from smile_dremio_gateway.ports.feed import FeedHandler, IFeedClient, IFeedMessage
from smile_dremio_gateway.ports.store import RECORDS_COLUMN, IStoreClient, IStoreConnection, Row

__all__ = [
    "FeedHandler",
    "IFeedClient",
    "IFeedMessage",
    "IStoreClient",
    "IStoreConnection",
    "RECORDS_COLUMN",
    "Row",
]
