"""
logfwrd - batch syslog records into compressed objects and ship them.

This package provides:
- A thread-safe batching buffer with size and age flush limits
- Gzip compression of each window
- Object storage (S3-compatible) and HTTP sinks with bounded delivery
- A UDP syslog listener and dispatcher wiring it all together
"""

__version__ = "0.3.0"

from logfwrd.batch import Batch, FlushReason
from logfwrd.buffer import BatchBuffer
from logfwrd.clock import ManualClock, SystemClock
from logfwrd.compressor import GzipCompressor
from logfwrd.dispatcher import Dispatcher
from logfwrd.errors import (
    CompressionError,
    ConfigError,
    DeliveryError,
    DeliveryStatusError,
    DeliveryTimeoutError,
    DeliveryTransportError,
    LogfwrdError,
)
from logfwrd.sinks import Sink, SinkType, create_sink
from logfwrd.stats import DeliveryStats

__all__ = [
    # Buffer
    "BatchBuffer",
    "Batch",
    "FlushReason",
    "GzipCompressor",
    # Clock
    "SystemClock",
    "ManualClock",
    # Dispatch
    "Dispatcher",
    "DeliveryStats",
    # Sinks
    "Sink",
    "SinkType",
    "create_sink",
    # Errors
    "LogfwrdError",
    "CompressionError",
    "ConfigError",
    "DeliveryError",
    "DeliveryTimeoutError",
    "DeliveryTransportError",
    "DeliveryStatusError",
]
