"""NatsFeedClient — IFeedClient over NATS JetStream (``[nats]`` extra).

Durable push consumer with manual acknowledgement, TLS client certificates
and user/password authentication.
"""

from __future__ import annotations

import logging
import ssl
from typing import TYPE_CHECKING

import nats
from nats.errors import Error as NatsError
from nats.errors import NotJSMessageError

from ..exceptions import FeedConnectionError
from ..ports.feed import IFeedClient, IFeedMessage

if TYPE_CHECKING:
    from nats.aio.client import Client
    from nats.aio.msg import Msg
    from nats.aio.subscription import Subscription

    from ..ports.feed import FeedHandler

logger = logging.getLogger("smile_dremio_gateway.feed")


class NatsFeedMessage(IFeedMessage):
    """Wraps a JetStream ``Msg``."""

    def __init__(self, msg: Msg) -> None:
        self._msg = msg
        self.subject = msg.subject
        self.data = msg.data

    async def ack(self) -> None:
        await self._msg.ack()

    async def nak(self) -> None:
        await self._msg.nak()

    @property
    def delivery_count(self) -> int:
        try:
            return int(self._msg.metadata.num_delivered)
        except NotJSMessageError:
            return 1


class NatsFeedClient(IFeedClient):
    """NATS JetStream adapter implementing IFeedClient."""

    def __init__(
        self,
        url: str,
        *,
        user: str | None = None,
        password: str | None = None,
        cert_path: str | None = None,
        key_path: str | None = None,
        ca_path: str | None = None,
        name: str = "smile-dremio-gateway",
    ) -> None:
        """Configure the connection.

        Args:
            url: NATS server URL, e.g. ``tls://smile.example.org:4222``.
            user: User name; SMILE uses the consumer name.
            password: Password for *user*.
            cert_path: Client certificate (PEM) for TLS.
            key_path: Private key (PEM) matching *cert_path*.
            ca_path: Optional CA bundle to verify the server.
            name: Connection name shown in server monitoring.
        """
        if not url:
            raise ValueError("url must not be empty")
        self._url = url
        self._user = user
        self._password = password
        self._cert_path = cert_path
        self._key_path = key_path
        self._ca_path = ca_path
        self._name = name
        self._nc: Client | None = None
        self._subscription: Subscription | None = None

    def _tls_context(self) -> ssl.SSLContext | None:
        if not self._cert_path:
            return None
        ctx = ssl.create_default_context(cafile=self._ca_path)
        ctx.load_cert_chain(self._cert_path, self._key_path)
        return ctx

    async def connect(self) -> None:
        """Open the connection; called by subscribe() when needed."""
        if self._nc is not None:
            return
        try:
            self._nc = await nats.connect(
                self._url,
                name=self._name,
                user=self._user,
                password=self._password,
                tls=self._tls_context(),
                error_cb=self._on_error,
                disconnected_cb=self._on_disconnected,
                reconnected_cb=self._on_reconnected,
            )
        except (NatsError, OSError, ssl.SSLError) as e:
            raise FeedConnectionError(f"Cannot connect to {self._url}: {e}") from e
        logger.info("Connected to %s", self._url)

    async def subscribe(self, consumer: str, subject: str, handler: FeedHandler) -> None:
        await self.connect()
        assert self._nc is not None

        async def on_message(msg: Msg) -> None:
            await handler(NatsFeedMessage(msg))

        try:
            js = self._nc.jetstream()
            self._subscription = await js.subscribe(
                subject,
                durable=consumer,
                cb=on_message,
                manual_ack=True,
            )
        except NatsError as e:
            raise FeedConnectionError(
                f"Cannot subscribe {consumer} to {subject}: {e}"
            ) from e

    async def shutdown(self) -> None:
        nc, self._nc = self._nc, None
        self._subscription = None
        if nc is not None and not nc.is_closed:
            await nc.close()

    async def _on_error(self, e: Exception) -> None:
        logger.error("NATS error: %s", e)

    async def _on_disconnected(self) -> None:
        logger.warning("Disconnected from %s", self._url)

    async def _on_reconnected(self) -> None:
        logger.info("Reconnected to %s", self._url)

    def __repr__(self) -> str:
        return f"NatsFeedClient(url={self._url!r})"

