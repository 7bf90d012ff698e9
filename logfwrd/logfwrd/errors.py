"""
Error taxonomy for the forwarder.

Hierarchy:
    LogfwrdError
        CompressionError      - one record could not be compressed
        ConfigError           - invalid or missing startup configuration
        DeliveryError         - a batch could not be delivered
            DeliveryTimeoutError
            DeliveryTransportError
            DeliveryStatusError
"""

from typing import Optional


class LogfwrdError(Exception):
    """Base class for all forwarder errors."""


class CompressionError(LogfwrdError):
    """Raised when a record cannot be written through the compressor."""


class ConfigError(LogfwrdError):
    """Raised when the startup configuration is invalid."""


class DeliveryError(LogfwrdError):
    """
    Raised by a Sink when a batch could not be delivered.

    Attributes:
        destination: Where the batch was headed (object key or URL)
    """

    kind = "error"

    def __init__(self, message: str, destination: Optional[str] = None):
        self.destination = destination
        super().__init__(message)


class DeliveryTimeoutError(DeliveryError):
    """The bounded network operation did not finish in time."""

    kind = "timeout"


class DeliveryTransportError(DeliveryError):
    """Connection or protocol failure while delivering."""

    kind = "transport"


class DeliveryStatusError(DeliveryError):
    """The remote endpoint rejected the batch with a non-success status."""

    kind = "status"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        destination: Optional[str] = None,
    ):
        self.status_code = status_code
        super().__init__(message, destination=destination)
