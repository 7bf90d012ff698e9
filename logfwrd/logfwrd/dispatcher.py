"""
Dispatcher - single-consumer bridge between the listener and the buffer.

Architecture:
    listener thread → submit() → queue.Queue → consumer thread → BatchBuffer.add()

The listener never touches the buffer. submit() never blocks: when the
queue is full (a slow upload is stalling the consumer) the record is
dropped and counted.
"""

import logging
import queue
import threading
from typing import Optional

from logfwrd.buffer import BatchBuffer
from logfwrd.errors import CompressionError

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10000
DEFAULT_POLL_INTERVAL = 1.0

_STOP = object()


class Dispatcher:
    """
    Owns the consumer thread feeding one BatchBuffer.

    Usage:
        with Dispatcher(buffer) as dispatcher:
            listener = SyslogListener(":5014", dispatcher.submit)
            ...
    """

    def __init__(
        self,
        buffer: BatchBuffer,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        idle_flush: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """
        Initialize the Dispatcher.

        Args:
            buffer: The buffer this dispatcher exclusively feeds
            queue_size: Records held while the consumer is busy
            idle_flush: Flush an expired window even when no records arrive
            poll_interval: Seconds between idle checks
        """
        self.buffer = buffer
        self.stats = buffer.stats
        self.idle_flush = idle_flush
        self.poll_interval = poll_interval
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    def submit(self, record: str) -> bool:
        """
        Hand a record to the consumer (non-blocking).

        Returns:
            False if the record was dropped because the queue is full or the
            dispatcher is stopping
        """
        if self._stopping.is_set():
            return False
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            dropped = self.stats.record_queue_drop()
            if dropped % 100 == 1:
                logger.warning(f"Intake queue full, dropped {dropped} records")
            return False
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._consume_loop,
            daemon=True,
            name="logfwrd-consumer",
        )
        self._thread.start()

    def stop(self, flush: bool = False, timeout: float = 5.0) -> None:
        """
        Drain queued records into the buffer and stop the consumer.

        Args:
            flush: Deliver the partial window before returning. Without it
                the partial window is discarded with the process.
            timeout: Seconds to wait for the consumer thread
        """
        self._stopping.set()
        if self._thread is not None:
            self._queue.put(_STOP)
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Consumer thread did not stop within timeout")
            self._thread = None

        if flush:
            self.buffer.flush()
        elif not self.buffer.is_empty:
            logger.info(f"Discarding partial batch of {self.buffer.entry_count} records")

    @property
    def pending_count(self) -> int:
        """Records waiting in the intake queue."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def process(self, record: str) -> None:
        """Add one record to the buffer, dropping it on compression failure."""
        try:
            self.buffer.add(record)
        except CompressionError as e:
            self.stats.record_compression_error()
            logger.error(f"Failed to add syslog message to buffer: {e}")

    def _consume_loop(self) -> None:
        while True:
            try:
                record = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if self.idle_flush:
                    self._run_safely(self.buffer.flush_if_expired)
                continue

            if record is _STOP:
                break
            self._run_safely(self.process, record)

    def _run_safely(self, fn, *args) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.exception(f"Unexpected error in consumer loop: {e}")

    def __enter__(self) -> "Dispatcher":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
