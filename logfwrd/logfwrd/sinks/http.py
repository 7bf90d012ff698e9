"""
HttpSink - POST each batch to an HTTP collector.

Request:
    POST {url}
    Content-Type: application/gzip
    User-Agent: Logfwrd/{version} (Python {python_version})
    Authorization: {auth}          (only if configured)
    X-Log-Tag: {label}             (only if the batch has a label)

    body: the batch bytes (concatenated gzip members)

Any status outside 200-299 is a delivery failure, redirects included. The
whole request is bounded by config.timeout; a collector that has not
answered by then is abandoned and its connection pool discarded.
"""

import logging
import platform
import time
from concurrent.futures import TimeoutError as DeadlineExceeded
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from logfwrd import __version__
from logfwrd.batch import Batch
from logfwrd.errors import (
    DeliveryStatusError,
    DeliveryTimeoutError,
    DeliveryTransportError,
)
from logfwrd.sinks.base import Sink, call_with_deadline

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_IDLE_TIMEOUT = 15.0
DEFAULT_POOL_SIZE = 10
CONTENT_TYPE = "application/gzip"
TAG_HEADER = "X-Log-Tag"


def user_agent() -> str:
    return f"Logfwrd/{__version__} (Python {platform.python_version()})"


@dataclass
class HttpSinkConfig:
    """Configuration for HttpSink."""
    url: str = ""
    auth: str = ""  # Sent verbatim as the Authorization header
    timeout: float = DEFAULT_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT  # Drop pooled connections after this idle time
    pool_size: int = DEFAULT_POOL_SIZE


class HttpSink(Sink):
    """
    Single-attempt HTTP delivery over a pooled requests.Session.

    The session's connections are reused between batches unless the sink
    has been idle for longer than idle_timeout, in which case the pool is
    closed and rebuilt before the next request.
    """

    def __init__(self, config: HttpSinkConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session or self._build_session()
        self._last_used: Optional[float] = None

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=1,
            pool_maxsize=self.config.pool_size,
            max_retries=0,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    @property
    def name(self) -> str:
        return self.config.url

    def headers(self, batch: Batch) -> Dict[str, str]:
        headers = {
            "Content-Type": CONTENT_TYPE,
            "User-Agent": user_agent(),
        }
        if self.config.auth:
            headers["Authorization"] = self.config.auth
        if batch.label:
            headers[TAG_HEADER] = batch.label
        return headers

    def _session_for_request(self) -> requests.Session:
        now = time.monotonic()
        if self._last_used is not None and now - self._last_used > self.config.idle_timeout:
            logger.debug(f"Connection pool idle for {now - self._last_used:.1f}s, recycling")
            self._session.close()
            self._session = self._build_session()
        self._last_used = now
        return self._session

    def deliver(self, batch: Batch) -> None:
        url = self.config.url
        session = self._session_for_request()
        logger.debug(f"POST {batch.size} bytes to {url}")

        try:
            call_with_deadline(lambda: self._post(session, batch), self.config.timeout)
        except DeadlineExceeded as e:
            self._discard_session(session)
            raise DeliveryTimeoutError(
                f"POST did not complete within {self.config.timeout}s",
                destination=url,
            ) from e
        finally:
            self._last_used = time.monotonic()

    def _post(self, session: requests.Session, batch: Batch) -> None:
        url = self.config.url
        try:
            response = session.post(
                url,
                data=batch.data,
                headers=self.headers(batch),
                timeout=self.config.timeout,
                allow_redirects=False,
            )
        except requests.Timeout as e:
            raise DeliveryTimeoutError(
                f"POST exceeded {self.config.timeout}s: {e}",
                destination=url,
            ) from e
        except requests.RequestException as e:
            raise DeliveryTransportError(f"POST failed: {e}", destination=url) from e

        try:
            if not 200 <= response.status_code <= 299:
                raise DeliveryStatusError(
                    f"received non-2xx response: {response.status_code}",
                    status_code=response.status_code,
                    destination=url,
                )
        finally:
            response.close()

    def _discard_session(self, session: requests.Session) -> None:
        """Replace a session whose request was abandoned so its connection is never reused."""
        if session is self._session:
            self._session = self._build_session()
        session.close()

    def close(self) -> None:
        self._session.close()
