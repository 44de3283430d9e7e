"""Periodic workload inventory polling."""

import asyncio
import logging
import time

from pulsedash.inventory import DockerInventory
from pulsedash.models import WorkloadView

logger = logging.getLogger(__name__)


class InventoryPoller:
    """
    Re-lists workloads on a fixed cadence, never more than once at a time.

    Each timer tick launches a poll without waiting for it, so a slow listing
    never shifts the cadence. A poll that finds another one in flight is a
    no-op. ``reset()`` restarts the cadence with an immediate poll; if a poll
    is already in flight at that moment, exactly one follow-up poll runs as
    soon as it finishes so the result reflects the state after the reset.
    """

    def __init__(
        self,
        inventory: DockerInventory,
        interval: float = 30.0,
        slow_threshold: float = 5.0,
    ) -> None:
        self._inventory = inventory
        self._interval = interval
        self._slow_threshold = slow_threshold
        self._latest: tuple[WorkloadView, ...] = ()
        self._timer: asyncio.Task[None] | None = None
        self._polls: set[asyncio.Task[bool]] = set()
        self._in_flight = False
        self._refresh_pending = False

    @property
    def latest(self) -> tuple[WorkloadView, ...]:
        """Last successful listing, sorted by name."""
        return self._latest

    @property
    def is_active(self) -> bool:
        """Check if the periodic timer is running."""
        return self._timer is not None

    @property
    def in_flight(self) -> bool:
        """Check if a listing is currently running."""
        return self._in_flight

    def start(self) -> None:
        """Poll now, then every ``interval`` seconds. No-op if already active."""
        if self._timer is not None:
            return

        logger.info("Starting inventory polling")
        self._timer = asyncio.create_task(self._tick_forever(), name="InventoryPoller")

    def stop(self) -> None:
        """Cancel the cadence. A poll already in flight is left to complete."""
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            logger.info("Stopped inventory polling")
        self._refresh_pending = False

    def reset(self) -> None:
        """Cancel the current cadence and restart it with an immediate poll."""
        self.stop()
        if self._in_flight:
            self._refresh_pending = True
        self.start()

    async def poll(self) -> bool:
        """
        List workloads once.

        Returns:
            False if the call was rejected because another poll is in flight,
            True otherwise (including when the listing itself failed).
        """
        if self._in_flight:
            logger.debug("Inventory poll already in flight, skipping")
            return False

        self._in_flight = True
        try:
            started = time.monotonic()
            views = await self._inventory.list()
            elapsed = time.monotonic() - started
            if elapsed > self._slow_threshold:
                logger.warning(
                    "Inventory listing took %.0fms (> %.0fs)",
                    elapsed * 1000,
                    self._slow_threshold,
                )
            self._latest = tuple(sorted(views, key=lambda view: view.name))
        except Exception:
            logger.exception("Error updating workload inventory")
        finally:
            self._in_flight = False

        if self._refresh_pending:
            self._refresh_pending = False
            self._spawn_poll()
        return True

    async def close(self) -> None:
        """Stop the cadence and cancel outstanding polls."""
        self.stop()
        polls = list(self._polls)
        for task in polls:
            task.cancel()
        await asyncio.gather(*polls, return_exceptions=True)

    async def _tick_forever(self) -> None:
        """Launch a poll immediately and then once per interval."""
        self._spawn_poll()
        while True:
            await asyncio.sleep(self._interval)
            self._spawn_poll()

    def _spawn_poll(self) -> None:
        """Run a poll as a tracked background task."""
        task = asyncio.create_task(self.poll())
        self._polls.add(task)
        task.add_done_callback(self._polls.discard)
