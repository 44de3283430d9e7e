"""Data models for pulsedash."""

import json
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class GpuMetrics:
    """One reading from the GPU sampler."""

    usage_percent: float | None
    power_w: float | None
    temperature_c: float | None


@dataclass(slots=True, frozen=True)
class CpuMetrics:
    """Aggregate CPU utilisation."""

    usage_percent: float  # 0.0 - 100.0


@dataclass(slots=True, frozen=True)
class MemoryMetrics:
    """System memory, in KiB."""

    used_kb: int
    available_kb: int
    total_kb: int


@dataclass(slots=True, frozen=True)
class TemperatureMetrics:
    """Hottest system sensor reading."""

    system_temperature_c: float | None


@dataclass(slots=True, frozen=True)
class WorkloadView:
    """Last known state of one container, as listed by the inventory."""

    id: str
    image: str
    command: str
    created: str
    status: str
    ports: str
    name: str
    cpu: str = ""  # e.g. '0.15%', empty when not running
    memory: str = ""  # e.g. '12MiB / 7.6GiB'

    def to_dict(self) -> dict[str, str]:
        """Return the wire representation."""
        return {
            "id": self.id,
            "image": self.image,
            "command": self.command,
            "created": self.created,
            "status": self.status,
            "ports": self.ports,
            "name": self.name,
            "cpu": self.cpu,
            "memory": self.memory,
        }


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable merged observation produced once per sampling tick."""

    gpu: GpuMetrics | None
    cpu: CpuMetrics
    temperature: TemperatureMetrics
    memory: MemoryMetrics
    inventory: tuple[WorkloadView, ...]
    keep_events: int
    next_poll_seconds: int

    def to_dict(self) -> dict[str, Any]:
        """
        Return the wire representation.

        The ``gpu`` key is omitted entirely when no GPU reading is available.
        """
        message: dict[str, Any] = {}
        if self.gpu is not None:
            message["gpu"] = {
                "usagePercent": self.gpu.usage_percent,
                "powerW": self.gpu.power_w,
                "temperatureC": self.gpu.temperature_c,
            }
        message["cpu"] = {"usagePercent": self.cpu.usage_percent}
        message["temperature"] = {
            "systemTemperatureC": self.temperature.system_temperature_c,
        }
        message["memory"] = {
            "usedKB": self.memory.used_kb,
            "availableKB": self.memory.available_kb,
            "totalKB": self.memory.total_kb,
        }
        message["inventory"] = [view.to_dict() for view in self.inventory]
        message["keepEvents"] = self.keep_events
        message["nextPollSeconds"] = self.next_poll_seconds
        return message

    def to_json(self) -> str:
        """Serialize to a JSON text frame."""
        return json.dumps(self.to_dict())
