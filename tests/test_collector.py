"""
Tests for stream collection.

Test coverage:
- Ordered, lossless concatenation regardless of chunk boundaries
- File-like, iterable and botocore StreamingBody sources
- Gzip decompression, including multi-member streams
- Read, decompression and truncation failures
- JSON parsing and ParseError
"""

import gzip
import io
import json
from typing import Iterator, List

import pytest
from botocore.response import StreamingBody

from s3helpers.core.exceptions import ParseError, StreamError
from s3helpers.storage.collector import (
    StreamCollector,
    collect,
    collect_and_parse,
    iter_stream,
    parse_json,
)

PAYLOAD = bytes(range(256)) * 40


def chunked(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class FailingStream:
    """Iterable that yields some chunks and then raises."""

    def __init__(self, chunks: List[bytes]) -> None:
        self.chunks = chunks
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield from self.chunks
        raise ConnectionResetError("connection reset by peer")

    def close(self) -> None:
        self.closed = True


class TestCollect:
    """Test plain (uncompressed) collection."""

    @pytest.mark.parametrize("size", [1, 7, 256, 1000, len(PAYLOAD), len(PAYLOAD) * 2])
    def test_chunking_invariance(self, size: int) -> None:
        """Output equals the payload whatever the chunk boundaries."""
        assert collect(chunked(PAYLOAD, size)) == PAYLOAD

    def test_preserves_emission_order_and_duplicates(self) -> None:
        chunks = [b"b", b"a", b"a", b"", b"c"]

        assert collect(chunks) == b"baac"

    def test_file_like_source(self) -> None:
        assert collect(io.BytesIO(PAYLOAD), chunk_size=333) == PAYLOAD

    def test_streaming_body_source(self) -> None:
        body = StreamingBody(io.BytesIO(PAYLOAD), len(PAYLOAD))

        assert collect(body, chunk_size=100) == PAYLOAD

    def test_empty_stream(self) -> None:
        assert collect([]) == b""

    def test_read_error_raises_stream_error(self) -> None:
        stream = FailingStream([b"partial", b"data"])

        with pytest.raises(StreamError, match="connection reset"):
            collect(stream)

        assert stream.closed

    def test_premature_end_raises_stream_error(self) -> None:
        """A body shorter than its Content-Length is reported, not returned."""
        body = StreamingBody(io.BytesIO(b"only part"), 100)

        with pytest.raises(StreamError):
            collect(body)

    def test_str_chunks_rejected(self) -> None:
        with pytest.raises(StreamError, match="expected bytes"):
            collect(["text"])


class TestGzip:
    """Test gzip decompression while collecting."""

    @pytest.mark.parametrize("size", [1, 10, 512, 100000])
    def test_decompression(self, size: int) -> None:
        compressed = gzip.compress(PAYLOAD)

        assert collect(chunked(compressed, size), gzipped=True) == PAYLOAD

    def test_multi_member(self) -> None:
        compressed = gzip.compress(b"first,") + gzip.compress(b"second")

        assert collect(chunked(compressed, 5), gzipped=True) == b"first,second"

    def test_trailing_zero_padding_ignored(self) -> None:
        compressed = gzip.compress(b"abc") + b"\x00" * 16

        assert collect(chunked(compressed, 7), gzipped=True) == b"abc"

    def test_padding_between_members(self) -> None:
        compressed = gzip.compress(b"ab") + b"\x00" * 4 + gzip.compress(b"cd")

        assert collect([compressed], gzipped=True) == b"abcd"

    def test_garbage_after_member_rejected(self) -> None:
        compressed = gzip.compress(b"abc") + b"\x00\x00junk"

        with pytest.raises(StreamError):
            collect([compressed], gzipped=True)

    def test_leading_zeros_rejected(self) -> None:
        with pytest.raises(StreamError):
            collect([b"\x00" * 4 + gzip.compress(b"abc")], gzipped=True)

    def test_truncated_gzip(self) -> None:
        compressed = gzip.compress(PAYLOAD)

        with pytest.raises(StreamError, match="ended prematurely"):
            collect([compressed[: len(compressed) // 2]], gzipped=True)

    def test_corrupted_gzip(self) -> None:
        with pytest.raises(StreamError, match="decompress"):
            collect([b"definitely not gzip"], gzipped=True)

    def test_empty_gzip_stream(self) -> None:
        assert collect([], gzipped=True) == b""


class TestStreamCollector:
    """Test the accumulator directly."""

    def test_append_and_finalize(self) -> None:
        collector = StreamCollector()
        collector.append(b"ab")
        collector.append(b"cd")

        assert collector.finalize() == b"abcd"
        assert collector.bytes_received == 4

    def test_cannot_append_after_finalize(self) -> None:
        collector = StreamCollector()
        collector.finalize()

        with pytest.raises(StreamError):
            collector.append(b"late")

    def test_cannot_finalize_twice(self) -> None:
        collector = StreamCollector()
        collector.finalize()

        with pytest.raises(StreamError):
            collector.finalize()

    def test_discard_drops_partial_data(self) -> None:
        collector = StreamCollector()
        collector.append(b"partial")
        collector.discard()

        with pytest.raises(StreamError):
            collector.finalize()

    def test_gzip_counts_compressed_bytes(self) -> None:
        compressed = gzip.compress(b"x" * 1000)
        collector = StreamCollector(gzipped=True)
        collector.append(compressed)

        assert collector.finalize() == b"x" * 1000
        assert collector.bytes_received == len(compressed)


class TestParse:
    """Test JSON parsing on top of collection."""

    def test_parse_json(self) -> None:
        value = {"name": "report", "values": [1, 2.5, None, True]}
        chunks = chunked(json.dumps(value).encode(), 3)

        assert collect_and_parse(chunks) == value

    def test_parse_gzipped_json(self) -> None:
        value = [{"id": i} for i in range(100)]
        compressed = gzip.compress(json.dumps(value).encode())

        assert collect_and_parse(chunked(compressed, 50), gzipped=True) == value

    def test_parse_disabled_returns_bytes(self) -> None:
        assert collect_and_parse([b"not json"], parse=False) == b"not json"

    def test_invalid_json_raises_parse_error(self) -> None:
        with pytest.raises(ParseError):
            collect_and_parse([b"{'single': 'quotes'}"])

    def test_truncated_json_raises_parse_error(self) -> None:
        with pytest.raises(ParseError):
            collect_and_parse([b'{"a": [1, 2'])

    @pytest.mark.parametrize("body", [b"NaN", b"Infinity", b"-Infinity", b'{"x": [1, NaN]}'])
    def test_non_finite_constants_raise_parse_error(self, body: bytes) -> None:
        with pytest.raises(ParseError, match="not a valid JSON value"):
            collect_and_parse([body])

    def test_invalid_utf8_raises_parse_error(self) -> None:
        with pytest.raises(ParseError):
            parse_json(b"\xff\xfe\x00")

    def test_parse_error_is_not_stream_error(self) -> None:
        assert not issubclass(ParseError, StreamError)


def test_iter_stream_skips_empty_chunks() -> None:
    assert list(iter_stream([b"", b"a", b"", b"b"])) == [b"a", b"b"]
