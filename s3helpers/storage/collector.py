"""
Stream collection with optional gzip decompression.

This module turns a byte stream (a botocore StreamingBody, any file-like
object, or an iterable of byte chunks) into a single bytes value. Chunks
are appended in arrival order; when the payload is gzip-encoded every chunk
passes through an incremental decompressor before it is accumulated.

Partial data is never handed back: a read error, a decompression error or a
truncated gzip stream discards what was accumulated and raises StreamError.
"""

import json
import zlib
from typing import Any, Iterable, Iterator, List, Optional

from loguru import logger

from s3helpers.core.exceptions import ParseError, S3HelperError, StreamError

DEFAULT_CHUNK_SIZE = 64 * 1024

# 16 + MAX_WBITS selects the gzip container
GZIP_WBITS = 16 + zlib.MAX_WBITS


def iter_stream(stream: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield byte chunks from a stream-like source.

    Args:
        stream: StreamingBody, file-like object with read(), or iterable of bytes
        chunk_size: Read size for file-like sources

    Yields:
        Non-empty byte chunks in source order
    """
    if hasattr(stream, "iter_chunks"):
        chunks: Iterable[bytes] = stream.iter_chunks(chunk_size)
    elif hasattr(stream, "read"):
        chunks = iter(lambda: stream.read(chunk_size), b"")
    else:
        chunks = stream

    for chunk in chunks:
        if isinstance(chunk, str):
            raise TypeError("stream yielded str, expected bytes")
        if chunk:
            yield bytes(chunk)


class StreamCollector:
    """Accumulates byte chunks into one buffer.

    Attributes:
        gzipped: Whether appended chunks are gzip-encoded
        bytes_received: Raw (pre-decompression) bytes appended so far
    """

    def __init__(self, gzipped: bool = False) -> None:
        self.gzipped = gzipped
        self.bytes_received = 0
        self._chunks: List[bytes] = []
        self._decompressor: Optional[Any] = zlib.decompressobj(GZIP_WBITS) if gzipped else None
        self._in_member = False
        self._member_ended = False
        self._finalized = False

    def append(self, chunk: bytes) -> None:
        """Add a chunk, decompressing it first when gzipped.

        Raises:
            StreamError: If the collector is finalized or the chunk is not valid gzip
        """
        if self._finalized:
            raise StreamError("Cannot append to a finalized collector")

        self.bytes_received += len(chunk)
        if self._decompressor is None:
            self._chunks.append(chunk)
            return

        try:
            self._decompress(chunk)
        except zlib.error as e:
            self.discard()
            raise StreamError(f"Failed to decompress stream: {e}") from e

    def _decompress(self, data: bytes) -> None:
        while data:
            if self._member_ended:
                # Zero padding after a finished member is skipped
                data = data.lstrip(b"\x00")
                if not data:
                    return
            self._in_member = True
            out = self._decompressor.decompress(data)
            if out:
                self._chunks.append(out)
            if not self._decompressor.eof:
                return
            # Concatenated gzip members decode back to back
            self._in_member = False
            self._member_ended = True
            data = self._decompressor.unused_data
            self._decompressor = zlib.decompressobj(GZIP_WBITS)

    def finalize(self) -> bytes:
        """Return the accumulated bytes and close the collector.

        Raises:
            StreamError: If the gzip stream ended before its trailer
        """
        if self._finalized:
            raise StreamError("Collector already finalized")

        if self._in_member:
            self.discard()
            raise StreamError("Gzip stream ended prematurely")

        data = b"".join(self._chunks)
        self._chunks = []
        self._finalized = True
        return data

    def discard(self) -> None:
        """Drop partial data; the collector cannot be used afterwards."""
        self._chunks = []
        self._finalized = True


def collect(stream: Any, gzipped: bool = False, chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Read a stream to the end and return its bytes.

    Args:
        stream: StreamingBody, file-like object, or iterable of byte chunks
        gzipped: Gunzip the stream before accumulating
        chunk_size: Read size for file-like sources

    Returns:
        All bytes in the order the source emitted them

    Raises:
        StreamError: On read failure, decompression failure or truncation
    """
    collector = StreamCollector(gzipped=gzipped)
    try:
        for chunk in iter_stream(stream, chunk_size):
            collector.append(chunk)
        data = collector.finalize()
    except S3HelperError:
        raise
    except Exception as e:
        collector.discard()
        raise StreamError(f"Failed to read stream: {e}") from e
    finally:
        close = getattr(stream, "close", None)
        if callable(close):
            close()

    logger.debug(f"Collected {len(data)} bytes from {collector.bytes_received} received")
    return data


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def parse_json(data: bytes) -> Any:
    """Decode UTF-8 bytes and parse them as strict JSON.

    NaN, Infinity and -Infinity are rejected.

    Raises:
        ParseError: If the bytes are not valid UTF-8 JSON
    """
    try:
        return json.loads(data.decode("utf-8"), parse_constant=_reject_constant)
    except ValueError as e:
        raise ParseError(f"Object body is not valid JSON: {e}") from e


def collect_and_parse(
    stream: Any,
    gzipped: bool = False,
    parse: bool = True,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Any:
    """Collect a stream and optionally parse it as JSON.

    Returns:
        The parsed value when ``parse`` is true, otherwise the raw bytes
    """
    data = collect(stream, gzipped=gzipped, chunk_size=chunk_size)
    if not parse:
        return data
    return parse_json(data)
