"""
Gzip compressor appending to an in-memory accumulator.

Every write() produces one complete gzip member. A window of N records is
therefore N concatenated members, which gzip.decompress() and zcat decode
back into the original text in write order.
"""

import gzip
import io
import zlib

from logfwrd.errors import CompressionError

COMPRESS_LEVEL = 9


class GzipCompressor:
    """
    Streams text through gzip into a growing byte accumulator.

    The compressor owns its accumulator. getvalue() hands out an immutable
    copy; reset() empties it for the next window.
    """

    def __init__(self, compresslevel: int = COMPRESS_LEVEL, encoding: str = "utf-8"):
        self.compresslevel = compresslevel
        self.encoding = encoding
        self._accumulator = io.BytesIO()
        self._members = 0

    def write(self, text: str) -> int:
        """
        Compress text as a new gzip member and append it.

        On failure the accumulator is truncated back to its previous size, so
        earlier members stay decodable.

        Args:
            text: Raw text to compress

        Returns:
            Number of compressed bytes appended

        Raises:
            CompressionError: If the text cannot be encoded or compressed
        """
        start = self._accumulator.tell()
        try:
            data = text.encode(self.encoding)
            with gzip.GzipFile(
                fileobj=self._accumulator,
                mode="wb",
                compresslevel=self.compresslevel,
                mtime=0,
            ) as gz:
                gz.write(data)
        except (UnicodeError, zlib.error, OSError, ValueError, TypeError) as e:
            self._accumulator.seek(start)
            self._accumulator.truncate()
            raise CompressionError(f"Failed to compress record: {e}") from e

        self._members += 1
        return self._accumulator.tell() - start

    def getvalue(self) -> bytes:
        return self._accumulator.getvalue()

    def reset(self) -> None:
        self._accumulator = io.BytesIO()
        self._members = 0

    @property
    def size(self) -> int:
        """Compressed bytes currently held."""
        return self._accumulator.tell()

    @property
    def members(self) -> int:
        """Number of gzip members written since the last reset."""
        return self._members
