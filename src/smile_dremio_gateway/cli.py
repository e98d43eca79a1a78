"""Command-line entry point: wire the gateway together and run until signalled."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from .config import GatewaySettings, load_settings
from .dispatcher import Dispatcher
from .exceptions import (
    ConfigurationError,
    GatewayConnectionError,
    StoreConnectionError,
)
from .feed.adapter import SmileFeedAdapter
from .metrics import SyncMetrics
from .store.tables import StoreTables
from .sync.engine import SyncEngine

if TYPE_CHECKING:
    from .ports.feed import IFeedClient
    from .ports.store import IStoreClient

logger = logging.getLogger("smile_dremio_gateway.cli")

app = typer.Typer(
    name="smile-dremio-gateway",
    help="Synchronize SMILE request and sample events into Dremio",
    add_completion=False,
)


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def build_dispatcher(
    settings: GatewaySettings,
    feed_client: IFeedClient,
    store: IStoreClient,
    *,
    metrics: SyncMetrics | None = None,
) -> Dispatcher:
    """Assemble adapter, engine and dispatcher from *settings*."""
    tables = StoreTables(
        settings.dremio.request_table,
        settings.dremio.sample_table,
        catalog=settings.dremio.object_store,
        barcode_column=settings.dremio.barcode_column,
    )
    engine = SyncEngine(store, tables, metrics=metrics)
    smile = settings.smile
    feed = SmileFeedAdapter(
        feed_client,
        consumer=smile.consumer,
        subject=smile.subject,
        new_request_filter=smile.new_request_filter,
        update_request_filter=smile.update_request_filter,
        update_sample_filter=smile.update_sample_filter,
        metrics=metrics,
    )
    options = settings.dispatcher
    return Dispatcher(
        feed,
        engine,
        max_concurrency=options.max_concurrency,
        failure_policy=options.failure_policy,
        max_deliveries=options.max_deliveries,
        retry_policy=options.retry_policy(),
        metrics=metrics,
    )


def _connect(settings: GatewaySettings) -> tuple[IFeedClient, IStoreClient]:
    from .feed.jetstream import NatsFeedClient
    from .store.flight import FlightStoreClient

    dremio = settings.dremio
    store = FlightStoreClient(
        dremio.host,
        dremio.username,
        dremio.password,
        port=dremio.port,
        tls=dremio.tls,
        routing_tag=dremio.routing_tag,
        routing_queue=dremio.routing_queue,
    )
    smile = settings.smile
    feed_client = NatsFeedClient(
        smile.url,
        user=smile.consumer,
        password=smile.password,
        cert_path=smile.cert_path,
        key_path=smile.key_path,
    )
    return feed_client, store


async def check_store(store: IStoreClient) -> None:
    """Fail fast when the store cannot be reached."""
    if not await store.health_check():
        raise StoreConnectionError("Cannot reach the Dremio store")
    logger.info("Dremio store reachable")


async def start(dispatcher: Dispatcher, store: IStoreClient) -> None:
    await check_store(store)
    await serve(dispatcher)


async def serve(dispatcher: Dispatcher, stop: asyncio.Event | None = None) -> None:
    """Run *dispatcher* until SIGINT/SIGTERM (or *stop*) and it has drained."""
    if stop is None:
        stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.debug("Cannot install handler for %s", sig.name)
    try:
        await dispatcher.run(stop)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@app.command()
def main(
    cfg_file: Annotated[
        Path,
        typer.Option("--cfg-file", "-f", help="Path to the YAML configuration file"),
    ] = Path("config.yaml"),
) -> None:
    """Consume SMILE events and write them to the Dremio tables."""
    try:
        settings = load_settings(cfg_file)
    except ConfigurationError as e:
        typer.secho(f"Error loading config: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None

    configure_logging(settings.logging.level)

    metrics = None
    if settings.logging.metrics_port is not None:
        from prometheus_client import REGISTRY, start_http_server

        metrics = SyncMetrics(REGISTRY)
        start_http_server(settings.logging.metrics_port)
        logger.info("Serving metrics on port %d", settings.logging.metrics_port)

    try:
        feed_client, store = _connect(settings)
    except ImportError as e:
        typer.secho(
            f"{e.name} is not installed; install smile-dremio-gateway[nats,dremio]",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(1) from None
    dispatcher = build_dispatcher(settings, feed_client, store, metrics=metrics)
    try:
        asyncio.run(start(dispatcher, store))
    except GatewayConnectionError as e:
        logger.error("Error starting SMILE consumer: %s", e)
        raise typer.Exit(1) from None
    logger.info("Exiting")
