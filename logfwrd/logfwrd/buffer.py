"""
BatchBuffer - accumulate compressed records and flush them to a Sink.

Architecture:
    add(record) → GzipCompressor → accumulator
                → flush policy (size, then age)
                → Batch snapshot → Sink.deliver() → unconditional reset

Flush policy, evaluated after every successful add():
    1. entry_count >= max_entries                         → flush (SIZE)
    2. entry_count > 0 and now - window_start > max_age   → flush (AGE)

Delivery is fire-and-forget: the window is reset whether or not the sink
accepted the batch, and failures go to DeliveryStats and the log instead of
being raised to the producer.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional, Union

from logfwrd.batch import Batch, FlushReason
from logfwrd.clock import system_clock
from logfwrd.compressor import GzipCompressor
from logfwrd.errors import DeliveryError
from logfwrd.sinks.base import Sink
from logfwrd.stats import DeliveryStats, describe_failure

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 5000
DEFAULT_MAX_AGE = 60.0
RECORD_SEPARATOR = "\n"


class BatchBuffer:
    """
    Windowed, compressed record buffer bound to one Sink.

    All state changes happen under one lock, so add() is safe from any
    number of producer threads and at most one flush is in flight.
    """

    def __init__(
        self,
        sink: Sink,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_age: Union[float, timedelta] = DEFAULT_MAX_AGE,
        label: str = "",
        stats: Optional[DeliveryStats] = None,
        clock=None,
        compressor: Optional[GzipCompressor] = None,
    ):
        """
        Initialize the BatchBuffer.

        Args:
            sink: Delivery target for finished batches
            max_entries: Records per window before a mandatory flush
            max_age: Seconds (or timedelta) after the first record before a
                mandatory flush
            label: Optional tag attached to every batch
            stats: Failure reporting channel. A fresh one is created if None
            clock: Object with now() and monotonic(). Defaults to real time
            compressor: Compressor to use. Defaults to gzip level 9
        """
        if isinstance(max_age, timedelta):
            max_age = max_age.total_seconds()
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        if max_age <= 0:
            raise ValueError(f"max_age must be positive, got {max_age}")

        self.sink = sink
        self.max_entries = max_entries
        self.max_age = float(max_age)
        self.label = label or ""
        self.stats = stats or DeliveryStats()
        self._clock = clock or system_clock
        self._compressor = compressor or GzipCompressor()
        self._lock = threading.Lock()

        self._entry_count = 0
        self._window_start: Optional[datetime] = None
        self._window_end: Optional[datetime] = None
        self._window_started_at: Optional[float] = None

    # =========================================================================
    # Producer API
    # =========================================================================

    def add(self, record: str) -> Optional[FlushReason]:
        """
        Append a record to the current window and flush if a limit is hit.

        A newline is appended to the record as the framing separator.

        Args:
            record: Opaque text record

        Returns:
            The reason a flush ran during this call, or None

        Raises:
            CompressionError: The record could not be compressed. It is
                dropped and the window is left as it was.
        """
        with self._lock:
            self._compressor.write(record + RECORD_SEPARATOR)

            now = self._clock.now()
            if self._entry_count == 0:
                self._window_start = now
                self._window_started_at = self._clock.monotonic()
            self._window_end = now
            self._entry_count += 1

            reason = self._due_reason()
            if reason is not None:
                self._flush_locked(reason)
            return reason

    def flush(self, reason: FlushReason = FlushReason.MANUAL) -> Optional[Batch]:
        """
        Deliver the current window now, whatever its size or age.

        Returns:
            The delivered (or dropped) batch, or None if the window was empty
        """
        with self._lock:
            return self._flush_locked(reason)

    def flush_if_expired(self) -> bool:
        """
        Flush when the current window is older than max_age.

        Used by the idle tick so a quiet stream still honours max_age.

        Returns:
            True if a flush ran
        """
        with self._lock:
            if self._entry_count > 0 and self._age() > self.max_age:
                self._flush_locked(FlushReason.AGE)
                return True
            return False

    # =========================================================================
    # State
    # =========================================================================

    @property
    def entry_count(self) -> int:
        with self._lock:
            return self._entry_count

    @property
    def window_start(self) -> Optional[datetime]:
        with self._lock:
            return self._window_start

    @property
    def window_end(self) -> Optional[datetime]:
        with self._lock:
            return self._window_end

    @property
    def pending_bytes(self) -> int:
        """Compressed bytes in the current window."""
        with self._lock:
            return self._compressor.size

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._entry_count == 0

    # =========================================================================
    # Internals (caller holds self._lock)
    # =========================================================================

    def _age(self) -> float:
        if self._window_started_at is None:
            return 0.0
        return self._clock.monotonic() - self._window_started_at

    def _due_reason(self) -> Optional[FlushReason]:
        if self._entry_count >= self.max_entries:
            return FlushReason.SIZE
        if self._entry_count > 0 and self._age() > self.max_age:
            return FlushReason.AGE
        return None

    def _flush_locked(self, reason: FlushReason) -> Optional[Batch]:
        if self._entry_count == 0:
            return None

        batch = Batch(
            data=self._compressor.getvalue(),
            window_start=self._window_start,
            window_end=self._window_end,
            entry_count=self._entry_count,
            label=self.label,
        )
        logger.debug(f"Flushing {batch!r} to {self.sink.name} (reason: {reason.value})")

        try:
            self.sink.deliver(batch)
        except DeliveryError as e:
            self.stats.record_failure(batch, e)
            logger.error(describe_failure(e))
        except Exception as e:
            self.stats.record_failure(batch, e)
            logger.exception(f"Unexpected error delivering batch to {self.sink.name}: {e}")
        else:
            self.stats.record_success(batch)
            logger.info(
                f"Successfully sent {batch.entry_count} records "
                f"({batch.size} bytes) to {self.sink.name}"
            )
        finally:
            self._reset()

        return batch

    def _reset(self) -> None:
        self._compressor.reset()
        self._entry_count = 0
        self._window_start = None
        self._window_end = None
        self._window_started_at = None
