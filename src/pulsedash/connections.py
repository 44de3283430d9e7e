"""Client connections and the stream lifecycle state machine."""

import asyncio
import logging
from enum import Enum

from fastapi import WebSocket

from pulsedash.monitor import SamplingLoop
from pulsedash.poller import InventoryPoller

logger = logging.getLogger(__name__)


class ConnectionClosed(Exception):
    """Raised when sending to a connection that can no longer deliver frames."""


class StreamState(Enum):
    """Lifecycle of the sampling loop and inventory polling."""

    STOPPED = "stopped"
    RUNNING = "running"
    SUSPENDED = "suspended"


class ClientConnection:
    """
    One connected browser.

    Frames are queued by ``send()`` and written by ``pump()``, which runs as
    the connection's own task. A slow client therefore only delays itself.
    """

    def __init__(self, websocket: WebSocket, max_pending: int = 100) -> None:
        self._websocket = websocket
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        client = getattr(websocket, "client", None)
        self.label = f"{client.host}:{client.port}" if client else "unknown"

    @property
    def closed(self) -> bool:
        """Check if the writer has stopped delivering frames."""
        return self._closed

    @property
    def pending(self) -> int:
        """Number of frames queued but not yet written."""
        return self._outbox.qsize()

    def send(self, payload: str) -> None:
        """Queue a text frame without blocking."""
        if self._closed:
            raise ConnectionClosed(self.label)
        try:
            self._outbox.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Client %s is not keeping up, dropping frame", self.label)

    async def pump(self) -> None:
        """Write queued frames until the socket fails or the task is cancelled."""
        try:
            while True:
                payload = await self._outbox.get()
                await self._websocket.send_text(payload)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Error sending to client %s", self.label, exc_info=True)
        finally:
            self._closed = True


class ConnectionManager:
    """
    Tracks live connections and drives the stream lifecycle.

    STOPPED -> RUNNING on the first connection (sampling and polling start).
    RUNNING -> SUSPENDED once the grace period elapses after the last
    disconnect (sampling paused, replay buffer cleared, polling stopped).
    SUSPENDED -> RUNNING on the next connection. A connection arriving during
    the grace period cancels the timer and the stream keeps running.
    """

    def __init__(
        self,
        sampler: SamplingLoop,
        poller: InventoryPoller,
        grace_period: float = 15.0,
    ) -> None:
        self._sampler = sampler
        self._poller = poller
        self._grace_period = grace_period
        self._connections: set[ClientConnection] = set()
        self._state = StreamState.STOPPED
        self._grace_timer: asyncio.Task[None] | None = None

    @property
    def state(self) -> StreamState:
        """Current lifecycle state."""
        return self._state

    @property
    def connection_count(self) -> int:
        """Number of live connections."""
        return len(self._connections)

    @property
    def grace_pending(self) -> bool:
        """Check if the suspend timer is armed."""
        return self._grace_timer is not None

    def connect(self, connection: ClientConnection) -> None:
        """
        Register a connection.

        The replay history is queued on the connection before it joins the
        broadcast set, so it always precedes the next live snapshot.
        """
        self._cancel_grace_timer()

        for snapshot in self._sampler.history():
            connection.send(snapshot.to_json())
        self._connections.add(connection)
        logger.info("Client %s connected (%d live)", connection.label, len(self._connections))

        self._ensure_running()

    def disconnect(self, connection: ClientConnection) -> None:
        """Remove a connection and arm the grace timer if it was the last one."""
        if connection not in self._connections:
            return
        self._connections.discard(connection)
        logger.info("Client %s disconnected (%d live)", connection.label, len(self._connections))

        if not self._connections:
            self._arm_grace_timer()

    def broadcast(self, payload: str) -> None:
        """Queue a frame on every live connection."""
        # Iterate over a copy: connections may leave while we send
        for connection in list(self._connections):
            try:
                connection.send(payload)
            except ConnectionClosed:
                logger.debug("Skipping closed client %s", connection.label)
            except Exception:
                logger.warning("Error sending to client %s", connection.label, exc_info=True)

    async def close(self) -> None:
        """Tear everything down at process shutdown."""
        self._cancel_grace_timer()
        await self._sampler.stop()
        await self._poller.close()
        self._state = StreamState.STOPPED

    def _ensure_running(self) -> None:
        """Start or resume sampling and polling for a new connection."""
        if self._state is StreamState.STOPPED:
            self._sampler.start(self.broadcast)
            self._poller.start()
            self._state = StreamState.RUNNING
        elif self._state is StreamState.SUSPENDED:
            self._sampler.resume()
            self._poller.start()
            self._state = StreamState.RUNNING
        else:
            self._poller.start()

    def _arm_grace_timer(self) -> None:
        self._cancel_grace_timer()
        self._grace_timer = asyncio.create_task(self._suspend_after_grace(), name="SuspendTimer")

    def _cancel_grace_timer(self) -> None:
        timer, self._grace_timer = self._grace_timer, None
        if timer is not None and not timer.done():
            timer.cancel()

    async def _suspend_after_grace(self) -> None:
        """Suspend once the grace period passes without a new connection."""
        await asyncio.sleep(self._grace_period)
        self._grace_timer = None
        self._suspend_if_idle()

    def _suspend_if_idle(self) -> None:
        if self._connections or self._state is not StreamState.RUNNING:
            return

        self._sampler.pause()
        self._poller.stop()
        self._state = StreamState.SUSPENDED
        logger.info("No clients for %.0fs, suspended metrics stream", self._grace_period)
