"""
Sink - delivery target interface.

A sink receives one finished Batch at a time and performs a single, bounded
network transfer. It never retries: by the time deliver() returns or raises
the caller has already dropped the window.

The bound is a wall-clock deadline on the whole transfer (call_with_deadline);
socket timeouts only limit each individual read.
"""

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable

from logfwrd.batch import Batch


def call_with_deadline(fn: Callable[[], Any], timeout: float, name: str = "logfwrd-deliver") -> Any:
    """
    Run fn on a daemon thread and wait at most timeout seconds for it.

    The call is abandoned, not interrupted, when the deadline passes: the
    thread finishes on its own once its socket gives up.

    Returns:
        Whatever fn returns

    Raises:
        concurrent.futures.TimeoutError: If fn did not finish in time
        Exception: Anything fn raised
    """
    future: Future = Future()

    def run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn())
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=run, daemon=True, name=name).start()
    return future.result(timeout=timeout)


class Sink(ABC):
    """
    Abstract base class for batch sinks.

    Implementations own their connection pool and must bound deliver()
    with an internal timeout.
    """

    @abstractmethod
    def deliver(self, batch: Batch) -> None:
        """
        Deliver a batch to the remote target.

        Args:
            batch: The window snapshot to send

        Raises:
            DeliveryTimeoutError: The transfer did not finish in time
            DeliveryTransportError: Connection or protocol failure
            DeliveryStatusError: The remote end rejected the batch
        """
        pass

    def close(self) -> None:
        """Release pooled connections. Default is a no-op."""
        pass

    @property
    def name(self) -> str:
        """Short human-readable description used in log messages."""
        return type(self).__name__

    def __enter__(self) -> "Sink":
        return self

    def __exit__(self, *args) -> None:
        self.close()
