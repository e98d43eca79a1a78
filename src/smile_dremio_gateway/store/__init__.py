"""Store adapters: table layout and the SQLAlchemy client.

The Dremio Arrow Flight client lives in :mod:`.flight` and needs the
``[dremio]`` extra.
"""

from __future__ import annotations

from .sql import SQLAlchemyStoreClient, SQLAlchemyStoreConnection
from .tables import StoreTables

__all__ = [
    "SQLAlchemyStoreClient",
    "SQLAlchemyStoreConnection",
    "StoreTables",
]
