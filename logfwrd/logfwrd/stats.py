"""
DeliveryStats - failure reporting channel for fire-and-forget delivery.

Failed batches are dropped, never retried. These counters are how an
operator notices that a sink has been failing for a while.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from logfwrd.batch import Batch
from logfwrd.errors import DeliveryError

logger = logging.getLogger(__name__)

DEFAULT_ALERT_AFTER = 5


class DeliveryStats:
    """
    Thread-safe delivery and drop counters.

    A WARNING is logged once per failure streak when the number of
    consecutive failed deliveries reaches alert_after.
    """

    def __init__(self, alert_after: int = DEFAULT_ALERT_AFTER):
        self.alert_after = alert_after
        self._lock = threading.Lock()
        self.batches_sent = 0
        self.records_sent = 0
        self.bytes_sent = 0
        self.batches_failed = 0
        self.records_dropped = 0
        self.compression_errors = 0
        self.queue_drops = 0
        self.consecutive_failures = 0
        self.failures_by_kind: Dict[str, int] = {}
        self.last_error: Optional[str] = None
        self.last_success_at: Optional[datetime] = None
        self._alerted = False

    def record_success(self, batch: Batch) -> None:
        with self._lock:
            self.batches_sent += 1
            self.records_sent += batch.entry_count
            self.bytes_sent += batch.size
            self.consecutive_failures = 0
            self.last_success_at = datetime.now(timezone.utc)
            recovered = self._alerted
            self._alerted = False

        if recovered:
            logger.info("Delivery recovered after sustained failures")

    def record_failure(self, batch: Batch, error: Exception) -> None:
        """
        Count a failed delivery; the batch's records are counted as dropped.
        """
        kind = type(error).__name__
        with self._lock:
            self.batches_failed += 1
            self.records_dropped += batch.entry_count
            self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1
            self.consecutive_failures += 1
            self.last_error = f"{kind}: {error}"
            alert = (
                not self._alerted
                and self.consecutive_failures >= self.alert_after
            )
            if alert:
                self._alerted = True
            streak = self.consecutive_failures

        if alert:
            logger.warning(
                f"Sustained delivery failure: {streak} consecutive batches dropped "
                f"(last error: {kind})"
            )

    def record_compression_error(self) -> None:
        with self._lock:
            self.compression_errors += 1

    def record_queue_drop(self) -> int:
        """Count a record dropped because the intake queue was full."""
        with self._lock:
            self.queue_drops += 1
            return self.queue_drops

    @property
    def healthy(self) -> bool:
        """False while the current failure streak is at or past alert_after."""
        with self._lock:
            return self.consecutive_failures < self.alert_after

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "batches_sent": self.batches_sent,
                "records_sent": self.records_sent,
                "bytes_sent": self.bytes_sent,
                "batches_failed": self.batches_failed,
                "records_dropped": self.records_dropped,
                "compression_errors": self.compression_errors,
                "queue_drops": self.queue_drops,
                "consecutive_failures": self.consecutive_failures,
                "failures_by_kind": dict(self.failures_by_kind),
                "last_error": self.last_error,
                "last_success_at": (
                    self.last_success_at.isoformat() if self.last_success_at else None
                ),
            }


def describe_failure(error: Exception) -> str:
    """Log-friendly description, with a distinct wording for timeouts."""
    destination = getattr(error, "destination", None)
    where = f" to {destination}" if destination else ""
    if isinstance(error, DeliveryError) and error.kind == "timeout":
        return f"Upload{where} canceled due to timeout, {error}"
    return f"Failed to deliver batch{where}, {error}"
