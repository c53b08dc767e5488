"""Multipart streaming uploads.

This module uploads a long or unbounded byte stream to S3 without holding
the whole payload in memory. The source is cut into fixed-size parts which
are uploaded in parallel on a bounded thread pool; once every part is
acknowledged the upload is completed.

Key features:
- At most ``max_concurrency`` parts in flight at a time
- Optional progress reporting with cumulative byte counts
- Abort on any failure, so no orphaned parts are left behind
- Cooperative cancellation through UploadSession.cancel()
- Single PutObject when the payload fits in one part

Session lifecycle: CREATED -> IN_PROGRESS -> COMPLETED | ABORTED
"""

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from itertools import chain
from typing import Any, Dict, Iterator, List, Optional, Set

from loguru import logger

from s3helpers.core.config import MIN_PART_SIZE, Settings
from s3helpers.core.exceptions import UploadError
from s3helpers.core.models import (
    CompletedPart,
    ObjectRef,
    ProgressCallback,
    UploadOptions,
    UploadResult,
    UploadState,
)
from s3helpers.storage.collector import iter_stream
from s3helpers.storage.s3_client import S3Client

DEFAULT_PART_SIZE = 8 * 1024 * 1024
DEFAULT_MAX_CONCURRENCY = 4

_TRANSITIONS = {
    UploadState.CREATED: {UploadState.IN_PROGRESS, UploadState.ABORTED},
    UploadState.IN_PROGRESS: {UploadState.COMPLETED, UploadState.ABORTED},
    UploadState.COMPLETED: set(),
    UploadState.ABORTED: set(),
}


def iter_parts(source: Any, part_size: int) -> Iterator[bytes]:
    """Re-chunk a source stream into parts of exactly ``part_size`` bytes.

    The last part holds whatever remains and may be smaller.
    """
    buffer = bytearray()
    for chunk in iter_stream(source, part_size):
        buffer.extend(chunk)
        while len(buffer) >= part_size:
            yield bytes(buffer[:part_size])
            del buffer[:part_size]
    if buffer:
        yield bytes(buffer)


class UploadSession:
    """State of one upload to a target object.

    Part acknowledgements arrive from worker threads; counters and the
    progress callback are serialised by a lock so reported byte counts
    never decrease.

    Attributes:
        ref: Target object
        upload_id: Multipart upload ID once started
        state: Current UploadState
        parts: Acknowledged parts
        bytes_transferred: Bytes acknowledged so far
    """

    def __init__(
        self,
        ref: ObjectRef,
        client: S3Client,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.ref = ref
        self.upload_id: Optional[str] = None
        self.state = UploadState.CREATED
        self.parts: List[CompletedPart] = []
        self.bytes_transferred = 0
        self._client = client
        self._on_progress = on_progress
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    def __repr__(self) -> str:
        return f"<UploadSession(location={self.ref.location}, state={self.state.value})>"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the running upload to stop; it aborts at the next part boundary."""
        logger.info(f"Cancellation requested for upload to {self.ref.location}")
        self._cancelled.set()

    def _transition(self, new_state: UploadState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise UploadError(
                f"Invalid upload state transition {self.state.value} -> {new_state.value}",
                details={"upload_id": self.upload_id, "state": self.state.value},
            )
        logger.debug(f"Upload {self.ref.location}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def start(self, content_type: Optional[str] = None) -> str:
        """Open the multipart upload and move to IN_PROGRESS."""
        self.upload_id = self._client.create_multipart_upload(self.ref, content_type=content_type)
        self._transition(UploadState.IN_PROGRESS)
        logger.info(f"Started multipart upload {self.upload_id} to {self.ref.location}")
        return self.upload_id

    def upload_part(self, part_number: int, data: bytes) -> CompletedPart:
        """Upload one part and record its acknowledgement."""
        etag = self._client.upload_part(self.ref, self.upload_id, part_number, data)
        part = CompletedPart(part_number=part_number, etag=etag, size=len(data))
        self.record(part)
        return part

    def record(self, part: CompletedPart) -> int:
        """Record an acknowledged part and report progress.

        Returns:
            Cumulative bytes acknowledged
        """
        with self._lock:
            self.parts.append(part)
            self.bytes_transferred += part.size
            total = self.bytes_transferred
            self._report(total)
        return total

    def _report(self, total: int) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(total)
        except Exception as e:
            logger.warning(f"Progress callback failed for {self.ref.location}: {e}")

    def complete(self) -> Dict[str, Any]:
        """Finalize the upload from the acknowledged parts."""
        response = self._client.complete_multipart_upload(self.ref, self.upload_id, self.parts)
        self._transition(UploadState.COMPLETED)
        logger.info(
            f"Completed multipart upload to {self.ref.location} "
            f"({len(self.parts)} parts, {self.bytes_transferred} bytes)"
        )
        return response

    def put_single(self, data: bytes, content_type: Optional[str] = None) -> Dict[str, Any]:
        """Write a payload that fits in one part with a plain PutObject."""
        self._transition(UploadState.IN_PROGRESS)
        response = self._client.put_object(self.ref, data, content_type=content_type)
        self.record(CompletedPart(part_number=1, etag=str(response.get("ETag", "")), size=len(data)))
        self._transition(UploadState.COMPLETED)
        logger.info(f"Uploaded {len(data)} bytes to {self.ref.location} in a single request")
        return response

    def abort(self) -> None:
        """Abort the upload and release any uploaded parts.

        The session ends ABORTED even if the abort request fails; that
        failure is logged.
        """
        if self.state in (UploadState.COMPLETED, UploadState.ABORTED):
            return

        if self.upload_id is not None:
            try:
                self._client.abort_multipart_upload(self.ref, self.upload_id)
            except Exception as e:
                logger.error(f"Failed to abort upload {self.upload_id} to {self.ref.location}: {e}")

        self._transition(UploadState.ABORTED)
        logger.warning(f"Aborted upload to {self.ref.location}")


class MultipartUploader:
    """Drives multipart uploads through an S3Client.

    Attributes:
        client: S3 client issuing the requests
        part_size: Default part size in bytes
        max_concurrency: Default number of parts in flight
    """

    def __init__(
        self,
        client: S3Client,
        part_size: int = DEFAULT_PART_SIZE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self.client = client
        self.part_size = part_size
        self.max_concurrency = max_concurrency

    @classmethod
    def from_settings(cls, client: S3Client, settings: Settings) -> "MultipartUploader":
        return cls(
            client,
            part_size=settings.multipart_part_size,
            max_concurrency=settings.multipart_max_concurrency,
        )

    def create_session(self, ref: ObjectRef, options: Optional[UploadOptions] = None) -> UploadSession:
        """Create a session for ``ref`` wired to the options' progress reporting."""
        options = options or UploadOptions()
        on_progress: Optional[ProgressCallback] = None
        if options.report_progress:
            on_progress = options.on_progress or self._log_progress(ref)
        return UploadSession(ref, self.client, on_progress=on_progress)

    @staticmethod
    def _log_progress(ref: ObjectRef) -> ProgressCallback:
        def log(total: int) -> None:
            logger.info(f"Upload to {ref.location}: {total} bytes transferred")

        return log

    def upload(
        self,
        ref: ObjectRef,
        source: Any,
        options: Optional[UploadOptions] = None,
        session: Optional[UploadSession] = None,
    ) -> UploadResult:
        """Upload a stream to ``ref``.

        Args:
            ref: Target object
            source: File-like object or iterable of byte chunks
            options: Upload options (progress, part size, concurrency)
            session: Pre-created session, e.g. to cancel from another thread

        Returns:
            UploadResult for the finalized object

        Raises:
            ValueError: If part_size or max_concurrency is out of range
            UploadError: If any part, the source, or finalization fails, or
                the session was cancelled; the session is aborted first
        """
        options = options or UploadOptions()
        part_size = options.part_size or self.part_size
        concurrency = options.max_concurrency or self.max_concurrency
        if part_size < MIN_PART_SIZE:
            raise ValueError(f"part_size must be at least {MIN_PART_SIZE} bytes")
        if concurrency <= 0:
            raise ValueError("max_concurrency must be greater than 0")

        if session is None:
            session = self.create_session(ref, options)

        in_flight: Set[Future] = set()
        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="s3-part") as executor:
            try:
                response = self._run(session, source, options, part_size, concurrency, executor, in_flight)
            except BaseException as e:
                self._abandon(session, in_flight)
                if isinstance(e, UploadError):
                    e.details.update(upload_id=session.upload_id, state=session.state.value)
                    raise
                if not isinstance(e, Exception):
                    raise
                raise UploadError(
                    f"Upload to {ref.location} failed: {e}",
                    details={"upload_id": session.upload_id, "state": session.state.value},
                ) from e

        return UploadResult(
            bucket=ref.bucket,
            key=ref.key,
            location=ref.location,
            etag=response.get("ETag"),
            upload_id=session.upload_id,
            url=response.get("Location"),
            parts=sorted(session.parts, key=lambda p: p.part_number),
            bytes_transferred=session.bytes_transferred,
        )

    def _run(
        self,
        session: UploadSession,
        source: Any,
        options: UploadOptions,
        part_size: int,
        concurrency: int,
        executor: ThreadPoolExecutor,
        in_flight: Set[Future],
    ) -> Dict[str, Any]:
        parts = iter_parts(source, part_size)
        first = next(parts, None)
        second = next(parts, None) if first is not None else None
        self._check_cancelled(session)

        if second is None:
            return session.put_single(first or b"", content_type=options.content_type)

        session.start(content_type=options.content_type)
        for part_number, data in enumerate(chain((first, second), parts), start=1):
            self._check_cancelled(session)
            while len(in_flight) >= concurrency:
                self._drain(in_flight)
            in_flight.add(executor.submit(session.upload_part, part_number, data))

        while in_flight:
            self._drain(in_flight)
        self._check_cancelled(session)

        return session.complete()

    @staticmethod
    def _drain(in_flight: Set[Future]) -> None:
        done, pending = wait(in_flight, return_when=FIRST_COMPLETED)
        in_flight.clear()
        in_flight.update(pending)
        for future in done:
            # Re-raises the first part failure
            future.result()

    @staticmethod
    def _check_cancelled(session: UploadSession) -> None:
        if session.cancelled:
            raise UploadError(f"Upload to {session.ref.location} was cancelled")

    @staticmethod
    def _abandon(session: UploadSession, in_flight: Set[Future]) -> None:
        for future in in_flight:
            future.cancel()
        # Running parts settle before the abort request
        wait(in_flight)
        in_flight.clear()
        session.abort()
