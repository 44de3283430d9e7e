"""Shared fakes for pulsedash tests."""

import asyncio
import time

import pytest

from pulsedash.models import (
    CpuMetrics,
    GpuMetrics,
    MemoryMetrics,
    TemperatureMetrics,
    WorkloadView,
)


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_view(name: str, workload_id: str | None = None, status: str = "Up 2 minutes") -> WorkloadView:
    return WorkloadView(
        id=workload_id or f"id-{name}",
        image="nginx:latest",
        command='"nginx -g daemon off;"',
        created="2024-01-01 00:00:00 +0000 UTC",
        status=status,
        ports="0.0.0.0:80->80/tcp",
        name=name,
    )


class FakeGpuReader:
    """
    GPU reader double.

    In manual mode every reading is pushed with ``tick()``; otherwise
    ``reading`` is yielded every ``interval`` seconds.
    """

    def __init__(self, reading: GpuMetrics | None = None, interval: float = 0.01, manual: bool = False) -> None:
        self.reading = reading
        self.interval = interval
        self.manual = manual
        self.closed = False
        self._ticks: asyncio.Queue[GpuMetrics | None] = asyncio.Queue()

    def tick(self, reading: GpuMetrics | None = None) -> None:
        """Push one reading in manual mode."""
        self._ticks.put_nowait(reading)

    async def samples(self):
        while True:
            if self.manual:
                yield await self._ticks.get()
            else:
                await asyncio.sleep(self.interval)
                yield self.reading

    async def aclose(self) -> None:
        self.closed = True


class FakeCpuReader:
    def __init__(self, usage: float = 12.5) -> None:
        self.calls = 0
        self.usage = usage

    def sample(self) -> CpuMetrics:
        self.calls += 1
        return CpuMetrics(usage_percent=self.usage)


class FakeMemoryReader:
    def sample(self) -> MemoryMetrics:
        return MemoryMetrics(used_kb=4_000_000, available_kb=12_000_000, total_kb=16_000_000)


class FakeTemperatureReader:
    def sample(self) -> TemperatureMetrics:
        return TemperatureMetrics(system_temperature_c=48.0)


class FakeInventory:
    """
    Inventory double recording every call.

    When ``gated`` is set, ``list()`` blocks until ``release()``.
    """

    def __init__(self, views: list[WorkloadView] | None = None, result: bool = True, gated: bool = False) -> None:
        self.views = views if views is not None else []
        self.result = result
        self.gated = gated
        self.fail = False
        self.list_calls = 0
        self.started_at: list[float] = []
        self.active = 0
        self.max_active = 0
        self.actions: list[tuple[str, str]] = []
        self._gate = asyncio.Event()

    def release(self) -> None:
        """Let one gated listing finish."""
        self._gate.set()

    async def list(self) -> list[WorkloadView]:
        self.list_calls += 1
        self.started_at.append(time.monotonic())
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gated:
                await self._gate.wait()
                self._gate.clear()
            if self.fail:
                raise RuntimeError("docker daemon unavailable")
            return list(self.views)
        finally:
            self.active -= 1

    async def start(self, workload_id: str) -> bool:
        self.actions.append(("start", workload_id))
        return self.result

    async def stop(self, workload_id: str) -> bool:
        self.actions.append(("stop", workload_id))
        return self.result

    async def restart(self, workload_id: str) -> bool:
        self.actions.append(("restart", workload_id))
        return self.result


class FakeWebSocket:
    """Records text frames; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.client = None

    async def send_text(self, payload: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset by peer")
        self.sent.append(payload)


@pytest.fixture
def gpu_reading() -> GpuMetrics:
    return GpuMetrics(usage_percent=37.0, power_w=85.5, temperature_c=61.0)
