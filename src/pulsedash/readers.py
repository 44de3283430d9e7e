"""Hardware metric readers for pulsedash.

The GPU reader wraps a long-running ``nvidia-smi`` process and is the pacing
source for sampling. The CPU, memory and temperature readers are synchronous
psutil reads that fall back to the last known value when a read fails.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

import psutil

from pulsedash.models import CpuMetrics, GpuMetrics, MemoryMetrics, TemperatureMetrics

logger = logging.getLogger(__name__)

GPU_QUERY = "utilization.gpu,power.draw,temperature.gpu"


def _parse_float(raw: str) -> float | None:
    """Parse a numeric nvidia-smi field, mapping '[N/A]' and friends to None."""
    try:
        return float(raw.strip())
    except ValueError:
        return None


class GpuReader:
    """
    Streams GPU readings from ``nvidia-smi --loop-ms``.

    Yields one value per interval. If nvidia-smi cannot be started or exits,
    the reader keeps yielding ``None`` at the same interval and never restarts
    the process.
    """

    def __init__(self, interval: float = 2.0, binary: str = "nvidia-smi", gpu_id: int = 0) -> None:
        self._interval = interval
        self._binary = binary
        self._gpu_id = gpu_id
        self._process: asyncio.subprocess.Process | None = None
        self._last: GpuMetrics | None = None

    @property
    def interval(self) -> float:
        """Seconds between readings."""
        return self._interval

    async def samples(self) -> AsyncIterator[GpuMetrics | None]:
        """Yield GPU readings forever."""
        process = await self._spawn()
        if process is not None and process.stdout is not None:
            self._process = process
            try:
                async for raw in process.stdout:
                    line = raw.decode("utf-8", errors="replace").strip()
                    if line:
                        yield self._parse(line)
                returncode = await process.wait()
                logger.warning("nvidia-smi exited with code %s; GPU metrics disabled", returncode)
            except (OSError, ValueError) as exc:
                # StreamReader raises ValueError for a line over its buffer limit
                logger.warning("Lost nvidia-smi output (%s); GPU metrics disabled", exc)
            finally:
                await self.aclose()

        while True:
            await asyncio.sleep(self._interval)
            yield None

    async def aclose(self) -> None:
        """Terminate the nvidia-smi child process and wait for it to exit."""
        process, self._process = self._process, None
        if process is None:
            return
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        await process.wait()

    async def _spawn(self) -> asyncio.subprocess.Process | None:
        """Start nvidia-smi, or return None if it cannot be run."""
        try:
            return await asyncio.create_subprocess_exec(
                self._binary,
                f"--query-gpu={GPU_QUERY}",
                "--format=csv,noheader,nounits",
                f"--loop-ms={int(self._interval * 1000)}",
                f"--id={self._gpu_id}",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("Could not start %s (%s); GPU metrics disabled", self._binary, exc)
            return None

    def _parse(self, line: str) -> GpuMetrics | None:
        """Parse one CSV line; keep the previous reading if the line is malformed."""
        parts = line.split(",")
        if len(parts) != 3:
            logger.debug("Ignoring unexpected nvidia-smi output: %r", line)
            return self._last
        self._last = GpuMetrics(
            usage_percent=_parse_float(parts[0]),
            power_w=_parse_float(parts[1]),
            temperature_c=_parse_float(parts[2]),
        )
        return self._last


class CpuReader:
    """Aggregate CPU usage since the previous call."""

    def __init__(self) -> None:
        self._last = CpuMetrics(usage_percent=0.0)
        # First call returns 0.0; prime it so the first sample is meaningful
        psutil.cpu_percent(interval=None)

    def sample(self) -> CpuMetrics:
        """Read CPU usage, or the previous value if the read fails."""
        try:
            self._last = CpuMetrics(usage_percent=psutil.cpu_percent(interval=None))
        except (psutil.Error, OSError):
            logger.warning("CPU read failed, reusing last value", exc_info=True)
        return self._last


class MemoryReader:
    """System memory usage in KiB."""

    def __init__(self) -> None:
        self._last = MemoryMetrics(used_kb=0, available_kb=0, total_kb=0)

    def sample(self) -> MemoryMetrics:
        """Read memory usage, or the previous value if the read fails."""
        try:
            mem = psutil.virtual_memory()
            total_kb = mem.total // 1024
            available_kb = mem.available // 1024
            self._last = MemoryMetrics(
                used_kb=total_kb - available_kb,
                available_kb=available_kb,
                total_kb=total_kb,
            )
        except (psutil.Error, OSError):
            logger.warning("Memory read failed, reusing last value", exc_info=True)
        return self._last


class TemperatureReader:
    """Highest current reading across the available temperature sensors."""

    def __init__(self) -> None:
        self._last = TemperatureMetrics(system_temperature_c=None)

    def sample(self) -> TemperatureMetrics:
        """Read the hottest sensor, or the previous value if the read fails."""
        # Not available on every platform
        sensors_temperatures = getattr(psutil, "sensors_temperatures", None)
        if sensors_temperatures is None:
            return self._last
        try:
            readings = [
                entry.current
                for entries in sensors_temperatures().values()
                for entry in entries
                if entry.current is not None
            ]
        except (psutil.Error, OSError):
            logger.warning("Temperature read failed, reusing last value", exc_info=True)
            return self._last
        if readings:
            self._last = TemperatureMetrics(system_temperature_c=max(readings))
        return self._last
