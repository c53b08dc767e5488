"""Exception hierarchy for s3helpers."""

from typing import Any, Dict, Optional


class S3HelperError(Exception):
    """Base exception for all s3helpers errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(S3HelperError):
    """Raised when the requested object does not exist."""


class TransportError(S3HelperError):
    """Raised when a request fails on the network, auth, or service side."""


class StreamError(S3HelperError):
    """Raised when reading or decompressing a stream fails mid-transfer."""


class ParseError(S3HelperError):
    """Raised when an object body is not valid JSON."""


class UploadError(S3HelperError):
    """Raised when a multipart upload session fails or is cancelled."""


class ConfigurationError(S3HelperError):
    """Raised when settings loaded from the environment are invalid."""
