"""Storage package for S3 object access.

This package provides the boto3 client adapter, stream collection with
optional gzip decompression, and parallel multipart uploads.
"""

from s3helpers.storage.collector import StreamCollector, collect, collect_and_parse
from s3helpers.storage.multipart import MultipartUploader, UploadSession
from s3helpers.storage.s3_client import S3Client

__all__ = [
    "MultipartUploader",
    "S3Client",
    "StreamCollector",
    "UploadSession",
    "collect",
    "collect_and_parse",
]
