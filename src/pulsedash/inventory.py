"""Docker workload inventory for pulsedash.

Every call shells out to the ``docker`` CLI. Failures never raise: listing
returns an empty list and lifecycle actions return False.
"""

import asyncio
import logging

from pulsedash.models import WorkloadView

logger = logging.getLogger(__name__)

LIST_FORMAT = "{{.ID}}|{{.Image}}|{{.Command}}|{{.CreatedAt}}|{{.Status}}|{{.Ports}}|{{.Names}}"
STATS_FORMAT = "{{.ID}}|{{.CPUPerc}}|{{.MemUsage}}"


class DockerInventory:
    """Lists, starts, stops and restarts containers through the docker CLI."""

    def __init__(self, binary: str = "docker") -> None:
        self._binary = binary

    async def list(self) -> list[WorkloadView]:
        """Return every container (running or not) with its resource usage."""
        output = await self._run("container", "ls", "--all", "--no-trunc", "--format", LIST_FORMAT)
        if output is None:
            return []
        stats = await self._stats()

        views: list[WorkloadView] = []
        for line in output.splitlines():
            parts = line.split("|")
            if len(parts) != 7:
                continue
            container_id, image, command, created, status, ports, name = parts
            cpu, memory = stats.get(container_id, ("", ""))
            views.append(
                WorkloadView(
                    id=container_id,
                    image=image,
                    command=command,
                    created=created,
                    status=status,
                    ports=ports,
                    name=name,
                    cpu=cpu,
                    memory=memory,
                )
            )
        return views

    async def start(self, workload_id: str) -> bool:
        """Start a container; True if docker reported success."""
        return await self._action("start", workload_id)

    async def stop(self, workload_id: str) -> bool:
        """Stop a container; True if docker reported success."""
        return await self._action("stop", workload_id)

    async def restart(self, workload_id: str) -> bool:
        """Restart a container; True if docker reported success."""
        return await self._action("restart", workload_id)

    async def _stats(self) -> dict[str, tuple[str, str]]:
        """Map container id to (cpu, memory) for running containers."""
        output = await self._run("stats", "--no-stream", "--no-trunc", "--format", STATS_FORMAT)
        if output is None:
            return {}
        stats: dict[str, tuple[str, str]] = {}
        for line in output.splitlines():
            parts = line.split("|")
            if len(parts) == 3:
                stats[parts[0]] = (parts[1], parts[2])
        return stats

    async def _action(self, verb: str, workload_id: str) -> bool:
        """Run ``docker <verb> <id>`` and report whether it exited cleanly."""
        return await self._run(verb, workload_id) is not None

    async def _run(self, *args: str) -> str | None:
        """Run a docker subcommand; return stdout on exit code 0, else None."""
        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as exc:
            logger.warning("docker %s failed to run: %s", args[0], exc)
            return None

        if process.returncode != 0:
            logger.warning(
                "docker %s exited with code %s: %s",
                " ".join(args[:2]),
                process.returncode,
                stderr.decode("utf-8", errors="replace").strip(),
            )
            return None
        return stdout.decode("utf-8", errors="replace").strip()
