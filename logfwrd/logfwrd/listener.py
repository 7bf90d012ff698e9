"""
Syslog listener - UDP server turning datagrams into JSON text records.

Architecture:
    UDP datagram → parse_syslog() → dict → format_record() → JSON line → callback

Datagrams are handled sequentially on one serving thread, so records reach
the callback in arrival order. The callback must not block.

The format is detected per message: RFC 5424 when the priority is followed
by a version number ("<34>1 ..."), RFC 3164 otherwise. A datagram that
matches neither is still forwarded, as {"content": ..., "client": ...}.

RFC 3164 fields:  priority, facility, severity, timestamp, hostname, tag,
                  content, client
RFC 5424 fields:  priority, facility, severity, version, timestamp,
                  hostname, app_name, proc_id, msg_id, structured_data,
                  message, client
"""

import json
import logging
import re
import socketserver
import threading
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_DATAGRAM_SIZE = 65535
NIL_VALUE = "-"
STRIPPED_FIELDS = ("tls_peer",)

_PRI = re.compile(r"^<(\d{1,3})>")
_RFC5424 = re.compile(
    r"^(?P<version>\d{1,2}) "
    r"(?P<timestamp>\S+) "
    r"(?P<hostname>\S+) "
    r"(?P<app_name>\S+) "
    r"(?P<proc_id>\S+) "
    r"(?P<msg_id>\S+) "
    r"(?P<rest>.*)$",
    re.DOTALL,
)
_RFC3164 = re.compile(
    r"^(?P<timestamp>[A-Z][a-z]{2} [ \d]\d \d{2}:\d{2}:\d{2}) "
    r"(?P<hostname>\S+) "
    r"(?P<rest>.*)$",
    re.DOTALL,
)
_TAG = re.compile(r"^(?P<tag>[^:\[\s]{1,48})(?:\[(?P<pid>[^\]]*)\])?:\s?")


def _split_structured_data(rest: str) -> Tuple[str, str]:
    """Split the RFC 5424 STRUCTURED-DATA part from the message."""
    if rest.startswith(NIL_VALUE):
        return NIL_VALUE, rest[2:] if rest.startswith("- ") else rest[1:]
    if not rest.startswith("["):
        return NIL_VALUE, rest

    escaped = False
    in_element = False
    for i, char in enumerate(rest):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "[":
            in_element = True
        elif char == "]":
            in_element = False
            if i + 1 == len(rest) or rest[i + 1] == " ":
                return rest[: i + 1], rest[i + 2:]
        elif char == " " and not in_element:
            return rest[:i], rest[i + 1:]
    return rest, ""


def _nil(value: str) -> str:
    return "" if value == NIL_VALUE else value


def parse_syslog(data: bytes, client: str = "") -> Dict[str, Any]:
    """
    Parse one syslog datagram.

    Args:
        data: Raw datagram payload
        client: "host:port" of the sender

    Returns:
        Dict of syslog fields, always including "client"
    """
    text = data.decode("utf-8", errors="replace").rstrip("\r\n\x00")
    if text.startswith("\ufeff"):
        text = text[1:]

    pri_match = _PRI.match(text)
    if not pri_match:
        return {"content": text, "client": client}

    priority = int(pri_match.group(1))
    body = text[pri_match.end():]
    parts: Dict[str, Any] = {
        "priority": priority,
        "facility": priority // 8,
        "severity": priority % 8,
    }

    match = _RFC5424.match(body)
    if match:
        structured_data, message = _split_structured_data(match.group("rest"))
        if message.startswith("\ufeff"):
            message = message[1:]
        parts.update(
            version=int(match.group("version")),
            timestamp=_nil(match.group("timestamp")),
            hostname=_nil(match.group("hostname")),
            app_name=_nil(match.group("app_name")),
            proc_id=_nil(match.group("proc_id")),
            msg_id=_nil(match.group("msg_id")),
            structured_data=_nil(structured_data),
            message=message,
        )
    else:
        match = _RFC3164.match(body)
        if match:
            parts.update(timestamp=match.group("timestamp"), hostname=match.group("hostname"))
            content = match.group("rest")
        else:
            parts.update(timestamp="", hostname="")
            content = body
        tag_match = _TAG.match(content)
        if tag_match:
            parts["tag"] = tag_match.group("tag")
            content = content[tag_match.end():]
        else:
            parts["tag"] = ""
        parts["content"] = content

    parts["client"] = client
    return parts


def format_record(parts: Dict[str, Any]) -> str:
    """Serialize parsed syslog fields as one compact JSON line (no newline)."""
    record = {k: v for k, v in parts.items() if k not in STRIPPED_FIELDS}
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Parse "host:port" or ":port" into a (host, port) tuple.

    Raises:
        ValueError: If the port is missing or invalid
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid listen address {address!r}, expected host:port")
    host = host.strip("[]") or "0.0.0.0"
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in listen address {address!r}")
    if not 0 <= port_number <= 65535:
        raise ValueError(f"Port out of range in listen address {address!r}")
    return host, port_number


class _SyslogHandler(socketserver.BaseRequestHandler):
    """Handles one datagram; self.request is (data, socket)."""

    def handle(self) -> None:
        data = self.request[0]
        host, port = self.client_address[:2]
        parts = parse_syslog(data, client=f"{host}:{port}")
        self.server.on_record(format_record(parts))


class _SyslogServer(socketserver.UDPServer):
    allow_reuse_address = True
    max_packet_size = MAX_DATAGRAM_SIZE

    def __init__(self, address: Tuple[str, int], on_record: Callable[[str], None]):
        self.on_record = on_record
        super().__init__(address, _SyslogHandler)


class SyslogListener:
    """
    Background UDP syslog server.

    Usage:
        listener = SyslogListener(":5014", dispatcher.submit)
        listener.start()
        ...
        listener.stop()
    """

    def __init__(self, address: str, on_record: Callable[[str], None]):
        """
        Args:
            address: "host:port" or ":port"
            on_record: Called with each JSON text record
        """
        self.address = parse_listen_address(address)
        self._server = _SyslogServer(self.address, on_record)
        self._thread: Optional[threading.Thread] = None

    @property
    def server_address(self) -> Tuple[str, int]:
        """Bound address; useful when listening on port 0."""
        return self._server.server_address[:2]

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.2},
            daemon=True,
            name="logfwrd-listener",
        )
        self._thread.start()
        host, port = self.server_address
        logger.info(f"Syslog server listening at {host}:{port}")

    def stop(self) -> None:
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join(timeout=5.0)
            self._thread = None
        self._server.server_close()

    def __enter__(self) -> "SyslogListener":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
