"""Helpers for reading, writing and stream-uploading S3 objects.

The package wraps boto3 with a small set of functions: fetch an object as
bytes, JSON or a stream (optionally gunzipped), write an object, and upload
an unbounded stream with a parallel multipart upload.
"""

from s3helpers.api import (
    get_buffer,
    get_json,
    get_object,
    get_object_stream,
    put_object,
    upload_stream,
)
from s3helpers.core.config import DEFAULT_REGION, Settings
from s3helpers.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    ParseError,
    S3HelperError,
    StreamError,
    TransportError,
    UploadError,
)
from s3helpers.core.logging import setup_logging
from s3helpers.core.models import (
    GetOptions,
    ObjectRef,
    UploadOptions,
    UploadResult,
    UploadState,
)
from s3helpers.storage import MultipartUploader, S3Client, StreamCollector, UploadSession

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_REGION",
    "ConfigurationError",
    "GetOptions",
    "MultipartUploader",
    "NotFoundError",
    "ObjectRef",
    "ParseError",
    "S3Client",
    "S3HelperError",
    "Settings",
    "StreamCollector",
    "StreamError",
    "TransportError",
    "UploadError",
    "UploadOptions",
    "UploadResult",
    "UploadSession",
    "UploadState",
    "get_buffer",
    "get_json",
    "get_object",
    "get_object_stream",
    "put_object",
    "setup_logging",
    "upload_stream",
]
