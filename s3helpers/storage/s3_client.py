"""S3 client adapter for object reads, writes and multipart primitives.

This module provides an S3Client class wrapping a boto3 S3 client bound to
a single region. It works with AWS S3 and any S3-compatible service
(MinIO, LocalStack) through a custom endpoint.

Key features:
- Explicitly constructed client handle (no process-wide client)
- Streaming reads returning the live response body
- Single puts with JSON encoding of structured values
- Multipart create/upload-part/complete/abort primitives
- Translation of botocore errors into NotFoundError/TransportError
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from s3helpers.core.config import DEFAULT_REGION, Settings
from s3helpers.core.exceptions import NotFoundError, TransportError
from s3helpers.core.models import CompletedPart, ObjectRef
from s3helpers.storage.collector import DEFAULT_CHUNK_SIZE

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def encode_body(body: Any) -> Any:
    """Return ``body`` ready for PutObject.

    Strings, bytes and file-like objects are sent as-is. Any other value is
    serialized to strict JSON text, so NaN and infinite floats are refused.

    Args:
        body: Raw payload or a JSON-serializable value

    Returns:
        The payload to transmit

    Raises:
        TypeError: If a structured value cannot be JSON-encoded
        ValueError: If a structured value holds NaN or an infinite float
    """
    if isinstance(body, (str, bytes, bytearray)) or hasattr(body, "read"):
        return body
    return json.dumps(body, allow_nan=False)


class S3Client:
    """S3 client handle bound to one region.

    All request methods take an ObjectRef. Requests are issued once; retries
    and timeouts are whatever the underlying botocore configuration applies.

    Attributes:
        region: Region the client is bound to
        read_chunk_size: Chunk size used when collecting object bodies
        _s3: Boto3 S3 client instance
    """

    def __init__(
        self,
        region: str = DEFAULT_REGION,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        client: Any = None,
        read_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize S3Client.

        Args:
            region: Region to bind the client to (default: eu-central-1)
            endpoint_url: Custom endpoint URL (e.g., http://localhost:9000 for MinIO)
            access_key: Access key ID, None to use boto3's credential chain
            secret_key: Secret access key, None to use boto3's credential chain
            client: Pre-built boto3 S3 client to use instead of building one
            read_chunk_size: Chunk size used when collecting object bodies
        """
        self.region = region
        self.read_chunk_size = read_chunk_size

        if client is not None:
            self._s3 = client
        else:
            self._s3 = self._build_client(region, endpoint_url, access_key, secret_key)

    @classmethod
    def from_settings(cls, settings: Settings, region: Optional[str] = None) -> "S3Client":
        """Create a client from Settings, optionally overriding the region.

        Args:
            settings: Settings carrying endpoint and credentials
            region: Region override; Settings.region when None

        Returns:
            Configured S3Client
        """
        return cls(
            region=region or settings.region,
            endpoint_url=settings.endpoint_url,
            access_key=settings.access_key_id,
            secret_key=settings.secret_access_key,
            read_chunk_size=settings.read_chunk_size,
        )

    @staticmethod
    def _build_client(
        region: str,
        endpoint_url: Optional[str],
        access_key: Optional[str],
        secret_key: Optional[str],
    ) -> Any:
        """Create a boto3 S3 client."""
        logger.debug(f"Creating S3 client for region {region}")
        return boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version="s3v4"),
        )

    def _translate(self, exc: Exception, action: str, ref: ObjectRef) -> Exception:
        """Map a botocore exception to NotFoundError or TransportError."""
        if isinstance(exc, ClientError):
            code = _error_code(exc)
            if code in NOT_FOUND_CODES:
                return NotFoundError(
                    f"Object not found: {ref.location}",
                    details={"bucket": ref.bucket, "key": ref.key, "code": code},
                )
            return TransportError(
                f"Failed to {action} {ref.location}: {exc}",
                details={"bucket": ref.bucket, "key": ref.key, "code": code},
            )
        return TransportError(
            f"Failed to {action} {ref.location}: {exc}",
            details={"bucket": ref.bucket, "key": ref.key},
        )

    def get_stream(self, ref: ObjectRef) -> Any:
        """Open a read stream on an object.

        Args:
            ref: Object to read

        Returns:
            The botocore StreamingBody; it can be consumed once

        Raises:
            NotFoundError: If the object does not exist
            TransportError: On network, credential or service failure
        """
        logger.debug(f"GetObject {ref.location}")
        try:
            response = self._s3.get_object(**ref.to_params())
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "get", ref) from e

        return response["Body"]

    def put_object(
        self,
        ref: ObjectRef,
        body: Any,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write an object with a single PutObject request.

        Non-string bodies are JSON-encoded and stored as application/json
        unless ``content_type`` says otherwise.

        Args:
            ref: Object to write
            body: Raw payload or a JSON-serializable value
            content_type: Content-Type to store with the object

        Returns:
            The PutObject response

        Raises:
            TransportError: If the request fails
            ValueError: If a structured body holds NaN or an infinite float;
                nothing is sent
        """
        payload = encode_body(body)

        params: Dict[str, Any] = {**ref.to_params(), "Body": payload}
        if content_type:
            params["ContentType"] = content_type
        elif payload is not body:
            params["ContentType"] = "application/json"

        logger.debug(f"PutObject {ref.location}")
        try:
            return self._s3.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "put", ref) from e

    def object_exists(self, ref: ObjectRef) -> bool:
        """Check if an object exists.

        Args:
            ref: Object to check

        Returns:
            True if the object exists, False otherwise

        Raises:
            TransportError: On failures other than a missing object
        """
        try:
            self._s3.head_object(**ref.to_params())
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise self._translate(e, "head", ref) from e
        except BotoCoreError as e:
            raise self._translate(e, "head", ref) from e

    def create_multipart_upload(
        self,
        ref: ObjectRef,
        content_type: Optional[str] = None,
    ) -> str:
        """Start a multipart upload session.

        Args:
            ref: Target object
            content_type: Content-Type to store with the object

        Returns:
            The upload ID

        Raises:
            TransportError: If the request fails or returns no UploadId
        """
        params: Dict[str, Any] = ref.to_params()
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._s3.create_multipart_upload(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "create multipart upload for", ref) from e

        upload_id = response.get("UploadId")
        if not upload_id:
            raise TransportError(
                "S3 response missing UploadId",
                details={"bucket": ref.bucket, "key": ref.key},
            )
        return str(upload_id)

    def upload_part(
        self,
        ref: ObjectRef,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Upload one part and return its ETag."""
        try:
            response = self._s3.upload_part(
                **ref.to_params(),
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=data,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, f"upload part {part_number} of", ref) from e

        return str(response["ETag"])

    def complete_multipart_upload(
        self,
        ref: ObjectRef,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> Dict[str, Any]:
        """Combine uploaded parts into the final object.

        Parts are sent sorted by part number regardless of the order they
        were acknowledged in.
        """
        payload = {
            "Parts": [part.to_dict() for part in sorted(parts, key=lambda p: p.part_number)]
        }

        try:
            return self._s3.complete_multipart_upload(
                **ref.to_params(),
                UploadId=upload_id,
                MultipartUpload=payload,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "complete multipart upload for", ref) from e

    def abort_multipart_upload(self, ref: ObjectRef, upload_id: str) -> None:
        """Abort a multipart upload and release its uploaded parts."""
        try:
            self._s3.abort_multipart_upload(**ref.to_params(), UploadId=upload_id)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "abort multipart upload for", ref) from e

    def list_parts(self, ref: ObjectRef, upload_id: str) -> List[Dict[str, Any]]:
        """List parts the service holds for an upload.

        Returns an empty list once the upload has been aborted or completed.
        """
        try:
            response = self._s3.list_parts(**ref.to_params(), UploadId=upload_id)
        except ClientError as e:
            if _error_code(e) == "NoSuchUpload":
                return []
            raise self._translate(e, "list parts for", ref) from e
        except BotoCoreError as e:
            raise self._translate(e, "list parts for", ref) from e

        return list(response.get("Parts", []))
