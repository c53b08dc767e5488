"""
Data types shared by the s3helpers storage layer.

This module defines the immutable value objects passed between the
caller-facing helpers, the S3 client adapter and the multipart uploader:
- Object references (bucket, key, region)
- Option structs replacing loose boolean flags
- Multipart upload state and results
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from s3helpers.core.config import DEFAULT_REGION

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class ObjectRef:
    """
    Identifies a single stored object.

    Attributes:
        bucket: Bucket name
        key: Object key inside the bucket
        region: Region the bucket lives in
    """

    bucket: str
    key: str
    region: str = DEFAULT_REGION

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("bucket must not be empty")
        if not self.key:
            raise ValueError("key must not be empty")
        if not self.region:
            raise ValueError("region must not be empty")

    @property
    def location(self) -> str:
        """Return the ``bucket/key`` form of this reference."""
        return f"{self.bucket}/{self.key}"

    def to_params(self) -> Dict[str, str]:
        """Return the Bucket/Key pair boto3 request methods expect."""
        return {"Bucket": self.bucket, "Key": self.key}


@dataclass(frozen=True)
class GetOptions:
    """
    Options for reading an object.

    Attributes:
        parse: Parse the body as JSON (default: True)
        gzipped: Gunzip the body before parsing or returning it (default: False)
    """

    parse: bool = True
    gzipped: bool = False


@dataclass(frozen=True)
class UploadOptions:
    """
    Options for a streaming multipart upload.

    Attributes:
        report_progress: Report cumulative bytes after each part (default: False)
        on_progress: Called with the cumulative byte count when reporting
            progress. If unset, progress is logged instead.
        part_size: Part size in bytes, None to use Settings
        max_concurrency: Max parts in flight, None to use Settings
        content_type: Content-Type stored with the object
    """

    report_progress: bool = False
    on_progress: Optional[ProgressCallback] = None
    part_size: Optional[int] = None
    max_concurrency: Optional[int] = None
    content_type: Optional[str] = None


class UploadState(str, Enum):
    """Lifecycle of a multipart upload session."""

    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class CompletedPart:
    """A part acknowledged by the storage service."""

    part_number: int
    etag: str
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert part to the shape CompleteMultipartUpload expects."""
        return {"ETag": self.etag, "PartNumber": self.part_number}


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of a finished upload.

    Attributes:
        bucket: Target bucket
        key: Target key
        location: ``bucket/key`` identifier of the finalized object
        etag: ETag returned by the service
        upload_id: Multipart upload ID, None when a single put was enough
        url: Location URL returned by the service, if any
        parts: Parts that made up the object
        bytes_transferred: Total payload size
    """

    bucket: str
    key: str
    location: str
    etag: Optional[str] = None
    upload_id: Optional[str] = None
    url: Optional[str] = None
    parts: List[CompletedPart] = field(default_factory=list)
    bytes_transferred: int = 0
