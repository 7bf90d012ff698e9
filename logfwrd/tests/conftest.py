"""Pytest fixtures for logfwrd tests."""

import gzip
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from logfwrd.batch import Batch
from logfwrd.buffer import BatchBuffer
from logfwrd.clock import ManualClock
from logfwrd.errors import DeliveryTransportError
from logfwrd.sinks.base import Sink
from logfwrd.stats import DeliveryStats


class RecordingSink(Sink):
    """Keeps every delivered batch in memory."""

    def __init__(self):
        self.batches: List[Batch] = []
        self.closed = False

    def deliver(self, batch: Batch) -> None:
        self.batches.append(batch)

    def close(self) -> None:
        self.closed = True

    def records(self, index: int = -1) -> List[str]:
        """Decompressed records of one delivered batch."""
        text = gzip.decompress(self.batches[index].data).decode("utf-8")
        return text.splitlines()


class FailingSink(RecordingSink):
    """Records the attempt, then raises."""

    def __init__(self, error: Exception = None):
        super().__init__()
        self.error = error or DeliveryTransportError("connection refused", destination="test")

    def deliver(self, batch: Batch) -> None:
        self.batches.append(batch)
        raise self.error


@pytest.fixture
def start_time():
    return datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time):
    return ManualClock(start_time)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return FailingSink()


@pytest.fixture
def stats():
    return DeliveryStats(alert_after=3)


@pytest.fixture
def buffer(sink, clock, stats):
    """BatchBuffer with max_entries=3 and max_age=60s on a manual clock."""
    return BatchBuffer(sink, max_entries=3, max_age=60, label="test", stats=stats, clock=clock)


@pytest.fixture
def sample_batch(start_time):
    return Batch(
        data=gzip.compress(b'{"content":"hello"}\n'),
        window_start=start_time,
        window_end=start_time + timedelta(seconds=5),
        entry_count=1,
        label="edge-1",
    )
