"""Tests for the ReplayBuffer."""

import pytest

from pulsedash.buffer import ReplayBuffer
from test_models import make_snapshot


def test_buffer_keeps_last_entries_oldest_first():
    """Test that with capacity 10, 15 appends leave the last 10 in order."""
    buffer = ReplayBuffer(10)
    snapshots = [make_snapshot() for _ in range(15)]

    for snapshot in snapshots:
        buffer.append(snapshot)

    assert len(buffer) == 10
    replay = buffer.replay()
    assert all(a is b for a, b in zip(replay, snapshots[5:]))


def test_buffer_never_exceeds_capacity():
    """Test appending past capacity evicts the oldest snapshot."""
    buffer = ReplayBuffer(3)
    for count in range(1, 8):
        buffer.append(make_snapshot())
        assert len(buffer) == min(count, 3)


def test_buffer_clear_empties():
    """Test clear() drops every snapshot."""
    buffer = ReplayBuffer(5)
    buffer.append(make_snapshot())
    buffer.append(make_snapshot())

    buffer.clear()

    assert len(buffer) == 0
    assert buffer.replay() == []


def test_replay_is_a_copy():
    """Test mutating the replay list does not touch the buffer."""
    buffer = ReplayBuffer(5)
    buffer.append(make_snapshot())

    buffer.replay().clear()

    assert len(buffer) == 1


def test_buffer_rejects_non_positive_capacity():
    """Test a capacity below 1 is refused."""
    with pytest.raises(ValueError):
        ReplayBuffer(0)
