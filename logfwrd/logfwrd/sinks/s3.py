"""
ObjectStoreSink - deliver batches as objects to an S3-compatible bucket.

Object key scheme:
    {prefix}{window_start}_{window_end}_{rand8}.log.gz

    window_start / window_end: UTC, formatted 20060102T150405Z style
    rand8: 8 random characters from [A-Za-z1-9], so two windows closing in
           the same second never collide

The body is the batch as-is (concatenated gzip members of NDJSON) and the
batch label, if any, is stored as the "tag" user metadata field
(x-amz-meta-tag).
"""

import logging
import random
import string
from concurrent.futures import TimeoutError as DeadlineExceeded
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from logfwrd.batch import Batch
from logfwrd.errors import (
    DeliveryStatusError,
    DeliveryTimeoutError,
    DeliveryTransportError,
)
from logfwrd.sinks.base import Sink, call_with_deadline

logger = logging.getLogger(__name__)

KEY_TIME_FORMAT = "%Y%m%dT%H%M%SZ"
KEY_SUFFIX_ALPHABET = string.ascii_letters + "123456789"
KEY_SUFFIX_LENGTH = 8
DEFAULT_TIMEOUT = 10.0
CONTENT_TYPE = "application/gzip"


@dataclass
class ObjectStoreConfig:
    """Configuration for ObjectStoreSink."""
    bucket: str = ""
    endpoint: str = ""
    region: str = "auto"
    access_key: str = ""
    secret_key: str = ""
    prefix: str = ""  # Optional key prefix within the bucket
    timeout: float = DEFAULT_TIMEOUT


def random_suffix(length: int = KEY_SUFFIX_LENGTH, rng: Optional[random.Random] = None) -> str:
    """Random disambiguating suffix for object keys."""
    rng = rng or random
    return "".join(rng.choice(KEY_SUFFIX_ALPHABET) for _ in range(length))


def format_key_time(dt: datetime) -> str:
    """Compact UTC timestamp. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(KEY_TIME_FORMAT)


def make_object_key(
    window_start: datetime,
    window_end: datetime,
    prefix: str = "",
    suffix: Optional[str] = None,
) -> str:
    """
    Build the object key for a batch window.

    Args:
        window_start: Time of the first record in the window
        window_end: Time of the last record in the window
        prefix: Optional key prefix
        suffix: Override for the random part (tests)

    Returns:
        Key such as "20240101T000000Z_20240101T000005Z_aB3dE9fG.log.gz"
    """
    if suffix is None:
        suffix = random_suffix()
    return f"{prefix}{format_key_time(window_start)}_{format_key_time(window_end)}_{suffix}.log.gz"


class ObjectStoreSink(Sink):
    """
    Uploads each batch with a single PutObject call.

    The boto3 client is built with static credentials, a custom endpoint,
    path-style addressing, connect/read timeouts equal to the delivery
    timeout, and retries disabled. The PutObject call as a whole is also
    held to that timeout.
    """

    def __init__(self, config: ObjectStoreConfig, client: Any = None):
        """
        Initialize the ObjectStoreSink.

        Args:
            config: Bucket, endpoint and credentials
            client: Pre-built S3 client. Built lazily from config if None
        """
        self.config = config
        self._s3_client = client

    def _get_s3_client(self):
        """Lazy initialization of S3 client."""
        if self._s3_client is None:
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=self.config.endpoint or None,
                region_name=self.config.region or None,
                aws_access_key_id=self.config.access_key or None,
                aws_secret_access_key=self.config.secret_key or None,
                config=Config(
                    connect_timeout=self.config.timeout,
                    read_timeout=self.config.timeout,
                    retries={"max_attempts": 1, "mode": "standard"},
                    s3={"addressing_style": "path"},
                ),
            )
        return self._s3_client

    @property
    def name(self) -> str:
        return f"s3://{self.config.bucket}/{self.config.prefix}"

    def object_key(self, batch: Batch) -> str:
        return make_object_key(batch.window_start, batch.window_end, prefix=self.config.prefix)

    def put_object_args(self, batch: Batch, key: str) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "Bucket": self.config.bucket,
            "Key": key,
            "Body": batch.data,
            "ContentType": CONTENT_TYPE,
        }
        if batch.label:
            args["Metadata"] = {"tag": batch.label}
        return args

    def deliver(self, batch: Batch) -> None:
        key = self.object_key(batch)
        destination = f"{self.config.bucket}/{key}"
        logger.debug(f"Sending gzip file: {key}")

        s3 = self._get_s3_client()
        try:
            call_with_deadline(
                lambda: s3.put_object(**self.put_object_args(batch, key)),
                self.config.timeout,
            )
        except (ConnectTimeoutError, ReadTimeoutError, DeadlineExceeded) as e:
            raise DeliveryTimeoutError(
                f"PutObject exceeded {self.config.timeout}s: {e}",
                destination=destination,
            ) from e
        except ClientError as e:
            meta = e.response.get("ResponseMetadata", {})
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise DeliveryStatusError(
                f"PutObject rejected ({code}): {e}",
                status_code=meta.get("HTTPStatusCode"),
                destination=destination,
            ) from e
        except BotoCoreError as e:
            raise DeliveryTransportError(
                f"PutObject failed: {e}",
                destination=destination,
            ) from e

        logger.debug(f"Uploaded {batch.size} bytes to s3://{destination}")

    def close(self) -> None:
        if self._s3_client is not None:
            self._s3_client.close()
            self._s3_client = None
