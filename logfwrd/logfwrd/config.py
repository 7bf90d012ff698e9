"""
Configuration loader for the forwarder.

Each setting is resolved in this order:
    1. Command-line flag
    2. LOGFWRD_* environment variable
    3. YAML config file (--config or LOGFWRD_CONFIG)
    4. Built-in default

Example logfwrd.yaml:

    listen: ":5014"
    max_records: 5000
    max_interval: 60s
    tag: edge-eu-1
    sink:
      type: s3
      bucket: logs
      endpoint: https://s3.example.com
      key: AKIA...
      secret: ...

Configuration is read once at startup; any problem raises ConfigError.
"""

import argparse
import math
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from logfwrd.errors import ConfigError
from logfwrd.listener import parse_listen_address
from logfwrd.sinks import SinkType
from logfwrd.sinks.http import DEFAULT_TIMEOUT as HTTP_DEFAULT_TIMEOUT
from logfwrd.sinks.http import HttpSinkConfig
from logfwrd.sinks.s3 import DEFAULT_TIMEOUT as S3_DEFAULT_TIMEOUT
from logfwrd.sinks.s3 import ObjectStoreConfig

ENV_PREFIX = "LOGFWRD_"
DEFAULT_LISTEN = ":5014"
DEFAULT_MAX_RECORDS = "5000"
DEFAULT_MAX_INTERVAL = "60s"
DEFAULT_QUEUE_SIZE = "10000"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class ForwarderConfig:
    """Fully resolved forwarder configuration."""
    sink_type: SinkType = SinkType.S3
    listen: str = DEFAULT_LISTEN
    max_records: int = 5000
    max_interval: float = 60.0  # seconds
    tag: str = ""
    queue_size: int = 10000
    flush_idle: bool = False
    flush_on_exit: bool = False
    verbose: bool = False
    s3: ObjectStoreConfig = field(default_factory=ObjectStoreConfig)
    http: HttpSinkConfig = field(default_factory=HttpSinkConfig)


def parse_duration(value: Any) -> float:
    """
    Parse a Go-style duration string into seconds.

    Accepts "500ms", "30s", "5m", "1h30m", "1.5h" and bare numbers, which
    are taken as seconds.

    Raises:
        ConfigError: If the value cannot be parsed or is not finite
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(float(value), value)

    text = str(value).strip()
    if not text:
        raise ConfigError("Invalid duration: empty string")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    try:
        return _finite(sign * float(text), value)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ConfigError(f"Invalid duration: {value!r}")
    return _finite(sign * total, value)


def _finite(seconds: float, value: Any) -> float:
    if not math.isfinite(seconds):
        raise ConfigError(f"Invalid duration: {value!r} is not a finite number of seconds")
    return seconds


def parse_count(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid {name}: {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Invalid {name}: {value!r} is not an integer")


def parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid {name}: {value!r} is not a boolean")


# =============================================================================
# Command line
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    """
    Argument parser for the logfwrd command.

    Every option defaults to None so that unset flags fall through to the
    environment and the config file.
    """
    parser = argparse.ArgumentParser(
        prog="logfwrd",
        description="Forward syslog messages to S3 or an HTTP collector in compressed batches",
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--sink", help="Delivery target: s3 or http (default: s3)")
    parser.add_argument("--listen", help="Address for the syslog listener (default: :5014)")
    parser.add_argument(
        "--max-records",
        help="Maximum number of log lines to deliver per batch (default: 5000)",
    )
    parser.add_argument(
        "--max-interval",
        help="Maximum time interval between log deliveries, e.g. 30s or 5m (default: 60s)",
    )
    parser.add_argument("--tag", help="Optional metadata string attached to the delivered batches")
    parser.add_argument("--bucket", help="Name of the S3 bucket where syslog messages are stored")
    parser.add_argument("--endpoint", help="URL of the S3 bucket endpoint")
    parser.add_argument("--region", help="Region where the S3 bucket is located (default: auto)")
    parser.add_argument("--key", help="Access key for the S3 bucket")
    parser.add_argument("--secret", help="Secret key for the S3 bucket")
    parser.add_argument("--prefix", help="Key prefix for uploaded objects")
    parser.add_argument("--url", help="HTTP collector URL")
    parser.add_argument("--auth", help="Authorization header value for the HTTP collector")
    parser.add_argument("--timeout", help="Delivery timeout (default: 10s for s3, 15s for http)")
    parser.add_argument("--queue-size", help="Records held while a batch is uploading (default: 10000)")
    parser.add_argument(
        "--flush-idle",
        action="store_const",
        const=True,
        help="Also flush an expired window when no records are arriving",
    )
    parser.add_argument(
        "--flush-on-exit",
        action="store_const",
        const=True,
        help="Deliver the partial batch on graceful shutdown",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_const",
        const=True,
        help="Enable debug logging",
    )
    return parser


# =============================================================================
# Loading
# =============================================================================


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Load a YAML config file and flatten its sink section.

    Returns:
        Dict keyed by setting name (same names as the CLI dests)
    """
    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(content, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    values: Dict[str, Any] = {}
    for key, value in content.items():
        key = str(key).replace("-", "_")
        if key == "sink" and isinstance(value, dict):
            for sink_key, sink_value in value.items():
                sink_key = str(sink_key).replace("-", "_")
                values["sink" if sink_key == "type" else sink_key] = sink_value
        else:
            values[key] = value
    return values


class _Resolver:
    """Looks a setting up in CLI args, then env, then file values."""

    def __init__(self, args: argparse.Namespace, env: Mapping[str, str], file_values: Dict[str, Any]):
        self.args = args
        self.env = env
        self.file_values = file_values

    def get(self, name: str, default: Any = None) -> Any:
        value = getattr(self.args, name, None)
        if value is not None:
            return value
        env_value = self.env.get(ENV_PREFIX + name.upper())
        if env_value:
            return env_value
        if self.file_values.get(name) is not None:
            return self.file_values[name]
        return default


def load_config(
    argv: Optional[Sequence[str]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ForwarderConfig:
    """
    Build a ForwarderConfig from the command line, environment and file.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated ForwarderConfig

    Raises:
        ConfigError: On unparsable values or missing sink parameters
    """
    env = os.environ if env is None else env
    args = build_parser().parse_args(argv)

    config_path = args.config or env.get(ENV_PREFIX + "CONFIG")
    file_values = load_config_file(config_path) if config_path else {}
    r = _Resolver(args, env, file_values)

    sink_type = SinkType.parse(str(r.get("sink", SinkType.S3.value)))
    default_timeout = S3_DEFAULT_TIMEOUT if sink_type is SinkType.S3 else HTTP_DEFAULT_TIMEOUT
    timeout = parse_duration(r.get("timeout", default_timeout))

    config = ForwarderConfig(
        sink_type=sink_type,
        listen=str(r.get("listen", DEFAULT_LISTEN)),
        max_records=parse_count(r.get("max_records", DEFAULT_MAX_RECORDS), "max-records"),
        max_interval=parse_duration(r.get("max_interval", DEFAULT_MAX_INTERVAL)),
        tag=str(r.get("tag", "")),
        queue_size=parse_count(r.get("queue_size", DEFAULT_QUEUE_SIZE), "queue-size"),
        flush_idle=parse_bool(r.get("flush_idle", False), "flush-idle"),
        flush_on_exit=parse_bool(r.get("flush_on_exit", False), "flush-on-exit"),
        verbose=parse_bool(r.get("verbose", False), "verbose"),
        s3=ObjectStoreConfig(
            bucket=str(r.get("bucket", "")),
            endpoint=str(r.get("endpoint", "")),
            region=str(r.get("region", "auto")),
            access_key=str(r.get("key", "")),
            secret_key=str(r.get("secret", "")),
            prefix=str(r.get("prefix", "")),
            timeout=timeout,
        ),
        http=HttpSinkConfig(
            url=str(r.get("url", "")),
            auth=str(r.get("auth", "")),
            timeout=timeout,
        ),
    )
    validate_config(config)
    return config


def validate_config(config: ForwarderConfig) -> None:
    """
    Check value ranges and required sink parameters.

    All missing parameters are reported in one error.
    """
    if config.max_records <= 0:
        raise ConfigError(f"max-records must be positive, got {config.max_records}")
    if config.max_interval <= 0:
        raise ConfigError(f"max-interval must be positive, got {config.max_interval}s")
    if config.queue_size <= 0:
        raise ConfigError(f"queue-size must be positive, got {config.queue_size}")
    try:
        parse_listen_address(config.listen)
    except ValueError as e:
        raise ConfigError(str(e))

    if config.sink_type is SinkType.S3:
        required = {
            "Bucket Name (--bucket)": config.s3.bucket,
            "S3 endpoint URL (--endpoint)": config.s3.endpoint,
            "S3 Secret key (--secret)": config.s3.secret_key,
            "S3 Access Key (--key)": config.s3.access_key,
        }
        timeout = config.s3.timeout
    else:
        required = {"HTTP collector URL (--url)": config.http.url}
        timeout = config.http.timeout

    missing: List[str] = [name for name, value in required.items() if not value]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")
    if timeout <= 0:
        raise ConfigError(f"timeout must be positive, got {timeout}s")
