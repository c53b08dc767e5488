"""In-memory stand-in for the boto3 S3 client."""

import hashlib
import io
import itertools
import threading
from typing import Any, Dict, Optional, Set, Tuple

from botocore.exceptions import ClientError
from botocore.response import StreamingBody


def client_error(code: str, operation: str, message: str = "") -> ClientError:
    """Build a botocore ClientError with the given error code."""
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


def _etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


class FakeS3:
    """In-memory S3 with the boto3 request methods s3helpers uses.

    Attributes:
        objects: Stored objects keyed by (bucket, key)
        content_types: ContentType stored per object
        uploads: Open multipart uploads keyed by upload ID
        aborted: Upload IDs that were aborted
        fail_parts: Part numbers whose upload raises an InternalError
    """

    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.content_types: Dict[Tuple[str, str], Optional[str]] = {}
        self.uploads: Dict[str, Dict[str, Any]] = {}
        self.aborted: Set[str] = set()
        self.fail_parts: Set[int] = set()
        self.fail_abort = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        data = self.objects.get((Bucket, Key))
        if data is None:
            raise client_error("NoSuchKey", "GetObject", "The specified key does not exist.")
        return {"Body": StreamingBody(io.BytesIO(data), len(data)), "ContentLength": len(data)}

    def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        data = self.objects.get((Bucket, Key))
        if data is None:
            raise client_error("404", "HeadObject", "Not Found")
        return {"ContentLength": len(data), "ETag": _etag(data)}

    def put_object(self, Bucket: str, Key: str, Body: Any, ContentType: Optional[str] = None) -> Dict[str, Any]:
        if hasattr(Body, "read"):
            Body = Body.read()
        if isinstance(Body, str):
            Body = Body.encode("utf-8")
        data = bytes(Body)
        with self._lock:
            self.objects[(Bucket, Key)] = data
            self.content_types[(Bucket, Key)] = ContentType
        return {"ETag": _etag(data)}

    def create_multipart_upload(self, Bucket: str, Key: str, ContentType: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            upload_id = f"upload-{next(self._ids)}"
            self.uploads[upload_id] = {
                "bucket": Bucket,
                "key": Key,
                "content_type": ContentType,
                "parts": {},
            }
        return {"Bucket": Bucket, "Key": Key, "UploadId": upload_id}

    def upload_part(self, Bucket: str, Key: str, UploadId: str, PartNumber: int, Body: bytes) -> Dict[str, Any]:
        if PartNumber in self.fail_parts:
            raise client_error("InternalError", "UploadPart", "We encountered an internal error.")
        with self._lock:
            upload = self.uploads.get(UploadId)
            if upload is None:
                raise client_error("NoSuchUpload", "UploadPart")
            upload["parts"][PartNumber] = bytes(Body)
        return {"ETag": _etag(Body)}

    def complete_multipart_upload(
        self,
        Bucket: str,
        Key: str,
        UploadId: str,
        MultipartUpload: Dict[str, Any],
    ) -> Dict[str, Any]:
        with self._lock:
            upload = self.uploads.pop(UploadId, None)
            if upload is None:
                raise client_error("NoSuchUpload", "CompleteMultipartUpload")
            data = b"".join(upload["parts"][p["PartNumber"]] for p in MultipartUpload["Parts"])
            self.objects[(Bucket, Key)] = data
            self.content_types[(Bucket, Key)] = upload["content_type"]
        return {
            "Location": f"https://{Bucket}.s3.eu-central-1.amazonaws.com/{Key}",
            "Bucket": Bucket,
            "Key": Key,
            "ETag": f'"{UploadId}-{len(MultipartUpload["Parts"])}"',
        }

    def abort_multipart_upload(self, Bucket: str, Key: str, UploadId: str) -> Dict[str, Any]:
        if self.fail_abort:
            raise client_error("InternalError", "AbortMultipartUpload")
        with self._lock:
            if self.uploads.pop(UploadId, None) is None:
                raise client_error("NoSuchUpload", "AbortMultipartUpload")
            self.aborted.add(UploadId)
        return {}

    def list_parts(self, Bucket: str, Key: str, UploadId: str) -> Dict[str, Any]:
        upload = self.uploads.get(UploadId)
        if upload is None:
            raise client_error("NoSuchUpload", "ListParts")
        return {
            "Parts": [
                {"PartNumber": n, "Size": len(data), "ETag": _etag(data)}
                for n, data in sorted(upload["parts"].items())
            ]
        }
