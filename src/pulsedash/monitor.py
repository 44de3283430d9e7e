"""Sampling loop for pulsedash."""

import asyncio
import logging
from collections.abc import Callable
from contextlib import aclosing, suppress

from pulsedash.buffer import ReplayBuffer
from pulsedash.models import GpuMetrics, Snapshot
from pulsedash.poller import InventoryPoller
from pulsedash.readers import CpuReader, GpuReader, MemoryReader, TemperatureReader

logger = logging.getLogger(__name__)


class SamplingLoop:
    """
    Produces one merged Snapshot per GPU reading and publishes it.

    The GPU reader paces the loop; CPU, memory, temperature and the latest
    inventory view are read synchronously on every tick. Each snapshot is
    appended to the replay buffer and handed to the publish callback as a
    JSON text frame.

    Pausing keeps the GPU subscription alive but drops its readings, so
    resuming is immediate.
    """

    def __init__(
        self,
        gpu: GpuReader,
        cpu: CpuReader,
        memory: MemoryReader,
        temperature: TemperatureReader,
        inventory: InventoryPoller,
        keep_events: int = 10,
    ) -> None:
        """
        Initialize the SamplingLoop.

        Args:
            gpu: Pacing source; yields a reading (or None) once per interval.
            cpu: Synchronous CPU reader.
            memory: Synchronous memory reader.
            temperature: Synchronous temperature reader.
            inventory: Source of the last known workload view.
            keep_events: Replay buffer capacity.
        """
        self._gpu = gpu
        self._cpu = cpu
        self._memory = memory
        self._temperature = temperature
        self._inventory = inventory
        self._keep_events = keep_events
        self._buffer = ReplayBuffer(keep_events)
        self._publish: Callable[[str], None] | None = None
        self._task: asyncio.Task[None] | None = None
        self._paused = False

    @property
    def is_running(self) -> bool:
        """Check if the loop task exists and has not finished."""
        return self._task is not None and not self._task.done()

    @property
    def is_paused(self) -> bool:
        """Check if snapshots are currently being dropped."""
        return self._paused

    def history(self) -> list[Snapshot]:
        """Buffered snapshots, oldest first."""
        return self._buffer.replay()

    def start(self, publish: Callable[[str], None]) -> None:
        """Subscribe to the GPU reader and start publishing snapshots."""
        if self.is_running:
            return

        logger.info("Starting metrics stream")
        self._publish = publish
        self._paused = False
        self._task = asyncio.create_task(self._poll_loop(), name="SamplingLoop")

    def pause(self) -> None:
        """Stop producing snapshots and drop the replay history."""
        if self._paused:
            return
        self._paused = True
        self._buffer.clear()
        logger.info("Paused metrics stream and cleared data buffer")

    def resume(self) -> None:
        """Start producing snapshots again after a pause."""
        if not self._paused:
            return
        self._paused = False
        logger.info("Resumed metrics stream")

    async def stop(self) -> None:
        """Cancel the loop and wait for the GPU reader to release its process."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await self._gpu.aclose()

    async def _poll_loop(self) -> None:
        """Main loop: one iteration per GPU reading."""
        try:
            async with aclosing(self._gpu.samples()) as readings:
                async for gpu in readings:
                    self._tick(gpu)
        except Exception:
            logger.exception("GPU reader failed, continuing without GPU metrics")

        while True:
            await asyncio.sleep(self._gpu.interval)
            self._tick(None)

    def _tick(self, gpu: GpuMetrics | None) -> None:
        """Collect and emit one snapshot unless paused."""
        if self._paused:
            return
        try:
            snapshot = self._collect_snapshot(gpu)
        except Exception:
            logger.exception("Failed to collect metrics snapshot")
            return
        self._emit(snapshot)

    def _collect_snapshot(self, gpu: GpuMetrics | None) -> Snapshot:
        return Snapshot(
            gpu=gpu,
            cpu=self._cpu.sample(),
            temperature=self._temperature.sample(),
            memory=self._memory.sample(),
            inventory=self._inventory.latest,
            keep_events=self._keep_events,
            next_poll_seconds=max(1, round(self._gpu.interval)),
        )

    def _emit(self, snapshot: Snapshot) -> None:
        self._buffer.append(snapshot)
        if self._publish is None:
            return
        try:
            self._publish(snapshot.to_json())
        except Exception:
            logger.exception("Failed to publish metrics snapshot")
