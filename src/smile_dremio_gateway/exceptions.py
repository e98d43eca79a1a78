"""Exceptions for smile-dremio-gateway."""

from __future__ import annotations


class GatewayError(Exception):
    """Root exception for the gateway."""


class ConfigurationError(GatewayError):
    """Raised when a required configuration property is missing or invalid."""


class GatewayConnectionError(GatewayError):
    """Base class for connectivity failures (feed or store)."""


class StoreConnectionError(GatewayConnectionError):
    """Raised when the analytic store cannot be reached or authenticated."""


class FeedConnectionError(GatewayConnectionError):
    """Raised when the message feed cannot be reached or subscribed."""


class StoreError(GatewayError):
    """Raised when a statement fails against the store."""


class DecodeError(GatewayError):
    """Raised when an inbound feed payload cannot be decoded."""

    def __init__(self, subject: str, reason: str) -> None:
        self.subject = subject
        self.reason = reason
        super().__init__(f"Cannot decode message on {subject!r}: {reason}")


# ── Synchronization errors ───────────────────────────────────────────


class SyncError(GatewayError):
    """Base class for synchronization (business) failures."""


class InvalidVersionsError(SyncError, ValueError):
    """Raised when an update is called with the wrong number of versions."""

    def __init__(self, kind: str, expected: str, got: int) -> None:
        self.kind = kind
        self.got = got
        super().__init__(
            f"{kind} metadata array must contain {expected} entries, got {got}"
        )


class NotFoundError(SyncError):
    """Raised when the request a sample belongs to does not exist."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id!r} not found")


class UpdateTargetNotFoundError(SyncError):
    """Raised when an update statement matched zero rows.

    The most likely cause is that the old version's key is not stored, e.g. a
    stale or duplicate update message.
    """

    def __init__(self, table: str, key: dict[str, object]) -> None:
        self.table = table
        self.key = key
        super().__init__(
            f"Update of {table} matched no rows, key not found: {key!r}"
        )


class PartialWriteError(SyncError):
    """Raised when an add wrote some state before failing.

    ``stage`` is ``"samples"`` or ``"request"``; ``compensated`` tells whether
    the inserted samples were removed again.
    """

    def __init__(self, request_id: str, stage: str, *, compensated: bool) -> None:
        self.request_id = request_id
        self.stage = stage
        self.compensated = compensated
        outcome = "rolled back" if compensated else "rollback FAILED"
        super().__init__(
            f"Adding request {request_id!r} failed while inserting {stage} "
            f"(samples {outcome})"
        )
