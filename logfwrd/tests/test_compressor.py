"""Tests for logfwrd.compressor module."""

import gzip
import zlib

import pytest

from logfwrd.compressor import GzipCompressor
from logfwrd.errors import CompressionError


class TestGzipCompressor:
    """Tests for GzipCompressor class."""

    def test_starts_empty(self):
        compressor = GzipCompressor()
        assert compressor.size == 0
        assert compressor.members == 0
        assert compressor.getvalue() == b""

    def test_single_write_decodes(self):
        compressor = GzipCompressor()
        written = compressor.write("hello world\n")

        assert written == compressor.size
        assert gzip.decompress(compressor.getvalue()) == b"hello world\n"

    def test_each_write_is_a_complete_member(self):
        compressor = GzipCompressor()
        compressor.write("first\n")
        first_size = compressor.size
        compressor.write("second\n")
        compressor.write("third\n")

        assert compressor.members == 3

        data = compressor.getvalue()
        # The first member decodes on its own, the rest is left over
        decoder = zlib.decompressobj(wbits=16 + zlib.MAX_WBITS)
        assert decoder.decompress(data) == b"first\n"
        assert len(decoder.unused_data) == len(data) - first_size

    def test_concatenated_members_decode_in_order(self):
        compressor = GzipCompressor()
        lines = [f'{{"n":{i}}}\n' for i in range(50)]
        for line in lines:
            compressor.write(line)

        assert gzip.decompress(compressor.getvalue()).decode() == "".join(lines)

    def test_uses_maximum_compression(self):
        compressor = GzipCompressor()
        compressor.write("x" * 1000)
        # XFL byte 2 marks best compression in the gzip header
        assert compressor.getvalue()[8] == 2

    def test_output_is_deterministic(self):
        a, b = GzipCompressor(), GzipCompressor()
        a.write("same\n")
        b.write("same\n")
        assert a.getvalue() == b.getvalue()

    def test_unicode_text(self):
        compressor = GzipCompressor()
        compressor.write("héllo ☃\n")
        assert gzip.decompress(compressor.getvalue()).decode("utf-8") == "héllo ☃\n"

    def test_reset_clears_accumulator(self):
        compressor = GzipCompressor()
        compressor.write("data\n")
        compressor.reset()

        assert compressor.size == 0
        assert compressor.members == 0
        compressor.write("fresh\n")
        assert gzip.decompress(compressor.getvalue()) == b"fresh\n"

    def test_getvalue_returns_copy(self):
        compressor = GzipCompressor()
        compressor.write("one\n")
        snapshot = compressor.getvalue()
        compressor.write("two\n")

        assert gzip.decompress(snapshot) == b"one\n"


class TestCompressionErrors:
    """Failed writes raise and leave earlier members intact."""

    def test_unencodable_text_raises(self):
        compressor = GzipCompressor()
        with pytest.raises(CompressionError):
            compressor.write("bad \ud800 surrogate")

    def test_failed_write_keeps_previous_data(self):
        compressor = GzipCompressor()
        compressor.write("good\n")
        before = compressor.getvalue()

        with pytest.raises(CompressionError):
            compressor.write("bad \ud800\n")

        assert compressor.getvalue() == before
        assert compressor.members == 1
        compressor.write("after\n")
        assert gzip.decompress(compressor.getvalue()) == b"good\nafter\n"

    def test_invalid_level_raises_compression_error(self):
        compressor = GzipCompressor(compresslevel=42)
        with pytest.raises(CompressionError):
            compressor.write("text\n")
        assert compressor.size == 0
