"""Client command parsing and dispatch."""

import json
import logging
from dataclasses import dataclass

from pulsedash.inventory import DockerInventory
from pulsedash.poller import InventoryPoller

logger = logging.getLogger(__name__)

# command name -> inventory method
ACTIONS = {
    "workload-start": "start",
    "workload-stop": "stop",
    "workload-restart": "restart",
}


@dataclass(slots=True, frozen=True)
class Command:
    """A recognized client request."""

    action: str  # 'start', 'stop' or 'restart'
    workload_id: str


def parse_command(raw: str) -> Command | None:
    """
    Parse a client text frame.

    Returns None for anything that is not a JSON object of the shape
    ``{"command": "workload-start|stop|restart", "id": "<string>"}``.
    """
    try:
        message = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(message, dict):
        return None

    name = message.get("command")
    workload_id = message.get("id")
    if not isinstance(name, str) or name not in ACTIONS or not isinstance(workload_id, str):
        return None
    return Command(action=ACTIONS[name], workload_id=workload_id)


class CommandDispatcher:
    """Runs workload actions requested by clients, then forces an inventory refresh."""

    def __init__(self, inventory: DockerInventory, poller: InventoryPoller) -> None:
        self._inventory = inventory
        self._poller = poller

    async def dispatch(self, raw: str) -> bool:
        """
        Handle one inbound message.

        Returns True if the message was a recognized command.
        """
        command = parse_command(raw)
        if command is None:
            logger.warning("Ignoring unrecognized client message: %.200s", raw)
            return False

        try:
            ok = await getattr(self._inventory, command.action)(command.workload_id)
        except Exception:
            logger.exception("Workload %s %s raised", command.action, command.workload_id)
            ok = False

        if ok:
            logger.info("Workload %s %s succeeded", command.action, command.workload_id)
        else:
            logger.warning("Workload %s %s failed", command.action, command.workload_id)

        self._poller.reset()
        return True
