"""
Batch sinks.

Components:
    Sink (ABC): Interface for all sinks
    ObjectStoreSink: Batch → S3-compatible object (in s3.py)
    HttpSink: Batch → HTTP POST (in http.py)

The variant is chosen once at startup from the tagged SinkType value.
"""

from enum import Enum

from logfwrd.errors import ConfigError
from logfwrd.sinks.base import Sink


class SinkType(Enum):
    """Supported delivery targets."""
    S3 = "s3"
    HTTP = "http"

    @classmethod
    def parse(cls, value: str) -> "SinkType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(t.value for t in cls)
            raise ConfigError(f"Unknown sink type {value!r} (expected one of: {choices})")


def create_sink(config) -> Sink:
    """
    Build the sink selected by a ForwarderConfig.

    Args:
        config: Object with sink_type, s3 and http attributes

    Returns:
        An ObjectStoreSink or HttpSink
    """
    if config.sink_type is SinkType.S3:
        from logfwrd.sinks.s3 import ObjectStoreSink
        return ObjectStoreSink(config.s3)
    if config.sink_type is SinkType.HTTP:
        from logfwrd.sinks.http import HttpSink
        return HttpSink(config.http)
    raise ConfigError(f"Unsupported sink type: {config.sink_type!r}")


__all__ = ["Sink", "SinkType", "create_sink"]
