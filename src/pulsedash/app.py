"""pulsedash - HTTP and WebSocket server."""

import argparse
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, WebSocket, status
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from pulsedash import __version__
from pulsedash.commands import CommandDispatcher
from pulsedash.config import Settings
from pulsedash.connections import ClientConnection, ConnectionManager
from pulsedash.inventory import DockerInventory
from pulsedash.logging_config import setup_logging
from pulsedash.monitor import SamplingLoop
from pulsedash.poller import InventoryPoller
from pulsedash.readers import CpuReader, GpuReader, MemoryReader, TemperatureReader

logger = logging.getLogger(__name__)


class Dashboard:
    """Owns the readers, the background loops and the connection manager."""

    def __init__(
        self,
        settings: Settings,
        *,
        gpu: GpuReader | None = None,
        cpu: CpuReader | None = None,
        memory: MemoryReader | None = None,
        temperature: TemperatureReader | None = None,
        inventory: DockerInventory | None = None,
    ) -> None:
        """
        Initialize the Dashboard.

        Any collaborator left as None gets its default implementation.
        """
        self.settings = settings
        self.inventory = inventory or DockerInventory()
        self.poller = InventoryPoller(
            self.inventory,
            interval=settings.inventory_poll_interval,
            slow_threshold=settings.slow_inventory_threshold,
        )
        self.sampler = SamplingLoop(
            gpu=gpu or GpuReader(interval=settings.sample_interval),
            cpu=cpu or CpuReader(),
            memory=memory or MemoryReader(),
            temperature=temperature or TemperatureReader(),
            inventory=self.poller,
            keep_events=settings.keep_events,
        )
        self.manager = ConnectionManager(
            self.sampler,
            self.poller,
            grace_period=settings.suspend_grace,
        )
        self.dispatcher = CommandDispatcher(self.inventory, self.poller)


def is_same_origin(websocket: WebSocket) -> bool:
    """Check the Origin header against the URL the client connected to."""
    origin = websocket.headers.get("origin")
    scheme = "https" if websocket.url.scheme == "wss" else "http"
    return origin == f"{scheme}://{websocket.url.netloc}"


def create_app(settings: Settings | None = None, dashboard: Dashboard | None = None) -> FastAPI:
    """Build the FastAPI application serving the stream and the static dashboard."""
    settings = settings or Settings.from_env()
    dashboard = dashboard or Dashboard(settings)
    manager = dashboard.manager
    dispatcher = dashboard.dispatcher
    max_pending = max(100, settings.keep_events * 2)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await manager.close()

    app = FastAPI(title="pulsedash", version=__version__, lifespan=lifespan)
    app.state.dashboard = dashboard

    @app.get("/ws")
    async def stream_requires_upgrade() -> PlainTextResponse:
        """Reject plain HTTP requests to the stream endpoint."""
        return PlainTextResponse("WebSocket upgrade required", status_code=status.HTTP_400_BAD_REQUEST)

    @app.websocket("/ws")
    async def stream(websocket: WebSocket) -> None:
        """Stream snapshots to one browser and run the commands it sends."""
        if not is_same_origin(websocket):
            logger.warning("Rejected cross-origin connection from %s", websocket.headers.get("origin"))
            # Closing before accept is answered with HTTP 403
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        client = ClientConnection(websocket, max_pending=max_pending)
        writer = asyncio.create_task(client.pump(), name=f"writer-{client.label}")
        manager.connect(client)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.warning("Ignoring binary frame from %s", client.label)
                    continue
                # Awaited inline: commands from one client run in order
                await dispatcher.dispatch(text)
        finally:
            manager.disconnect(client)
            writer.cancel()

    app.mount("/", StaticFiles(directory=settings.web_root, html=True), name="web")
    return app


def positive_int(raw: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {raw!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Command line flags; every flag overrides its environment variable."""
    parser = argparse.ArgumentParser(
        prog="pulsedash",
        description="Serve a live system telemetry dashboard.",
    )
    parser.add_argument("--host", help="bind address (default: all interfaces)")
    parser.add_argument("--port", type=int, help="listen port (default: 8080)")
    parser.add_argument("--web-root", type=Path, help="directory of static dashboard files")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--sample-interval", type=float, help="seconds between metric samples")
    parser.add_argument("--keep-events", type=positive_int, help="snapshots replayed to new clients")
    parser.add_argument("--version", action="version", version=f"pulsedash {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the pulsedash server."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env().override(
        host=args.host,
        port=args.port,
        web_root=args.web_root,
        log_level=args.log_level.upper() if args.log_level else None,
        sample_interval=args.sample_interval,
        keep_events=args.keep_events,
    )
    setup_logging(settings.log_level)

    app = create_app(settings)
    clickable_host = "localhost" if settings.host == "0.0.0.0" else settings.host
    logger.info("Server listening on http://%s:%d", clickable_host, settings.port)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        ws_ping_interval=settings.ping_interval,
        ws_ping_timeout=settings.ping_interval,
        log_config=None,
    )


if __name__ == "__main__":
    main()
