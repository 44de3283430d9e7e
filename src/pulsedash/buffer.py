"""Bounded replay history of recent snapshots."""

from collections import deque

from pulsedash.models import Snapshot


class ReplayBuffer:
    """
    Keeps the most recent ``capacity`` snapshots, oldest first.

    Appending beyond capacity evicts the oldest entry.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._entries: deque[Snapshot] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        """Maximum number of snapshots kept."""
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        """Number of snapshots currently held."""
        return len(self._entries)

    def append(self, snapshot: Snapshot) -> None:
        """Add a snapshot, evicting the oldest one when full."""
        self._entries.append(snapshot)

    def clear(self) -> None:
        """Drop every buffered snapshot."""
        self._entries.clear()

    def replay(self) -> list[Snapshot]:
        """Return a copy of the contents in production order."""
        return list(self._entries)
