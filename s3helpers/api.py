"""Caller-facing helpers for reading and writing S3 objects.

Every helper takes a bucket, a key and an optional region. Pass ``client``
to reuse a configured S3Client (or a fake in tests); without it a client is
built from Settings for the requested region. Invalid ``S3_HELPERS_*``
variables surface as ConfigurationError when Settings are read.

Usage:
    data = get_json("my-bucket", "reports/latest.json")
    raw = get_object("my-bucket", "dump.gz", options=GetOptions(parse=False, gzipped=True))
    put_object("my-bucket", "reports/latest.json", {"status": "ok"})

    with open("video.mp4", "rb") as f:
        result = upload_stream("my-bucket", "video.mp4", f, options=UploadOptions(report_progress=True))
"""

from typing import Any, Optional, Tuple

from s3helpers.core.config import load_settings
from s3helpers.core.models import GetOptions, ObjectRef, UploadOptions, UploadResult
from s3helpers.storage.collector import collect, collect_and_parse
from s3helpers.storage.multipart import MultipartUploader
from s3helpers.storage.s3_client import S3Client


def _resolve(
    bucket: str,
    key: str,
    region: Optional[str],
    client: Optional[S3Client],
) -> Tuple[ObjectRef, S3Client]:
    # Settings are only read when a client has to be built
    if client is None:
        settings = load_settings()
        region = region or settings.region
        client = S3Client.from_settings(settings, region=region)
    ref = ObjectRef(bucket=bucket, key=key, region=region or client.region)
    return ref, client


def get_object_stream(
    bucket: str,
    key: str,
    region: Optional[str] = None,
    client: Optional[S3Client] = None,
) -> Any:
    """Open a read stream on an object.

    Returns:
        The live response body; it can be consumed once

    Raises:
        NotFoundError: If the object does not exist
        TransportError: On network, credential or service failure
    """
    ref, client = _resolve(bucket, key, region, client)
    return client.get_stream(ref)


def get_buffer(
    bucket: str,
    key: str,
    region: Optional[str] = None,
    gzipped: bool = False,
    client: Optional[S3Client] = None,
) -> bytes:
    """Read a whole object into memory, gunzipping it if asked."""
    ref, client = _resolve(bucket, key, region, client)
    return collect(client.get_stream(ref), gzipped=gzipped, chunk_size=client.read_chunk_size)


def get_object(
    bucket: str,
    key: str,
    region: Optional[str] = None,
    options: Optional[GetOptions] = None,
    client: Optional[S3Client] = None,
) -> Any:
    """Read an object, parsed as JSON by default.

    Args:
        bucket: Bucket name
        key: Object key
        region: Region override
        options: Parse/gzip options (default: parse JSON, no gzip)
        client: S3Client to use

    Returns:
        The parsed JSON value, or bytes when ``options.parse`` is false

    Raises:
        NotFoundError: If the object does not exist
        TransportError: On request failure
        StreamError: If reading or decompressing the body fails
        ParseError: If parsing is requested and the body is not JSON
    """
    options = options or GetOptions()
    ref, client = _resolve(bucket, key, region, client)
    return collect_and_parse(
        client.get_stream(ref),
        gzipped=options.gzipped,
        parse=options.parse,
        chunk_size=client.read_chunk_size,
    )


def get_json(
    bucket: str,
    key: str,
    region: Optional[str] = None,
    gzipped: bool = False,
    client: Optional[S3Client] = None,
) -> Any:
    """Read an object and parse it as JSON."""
    return get_object(
        bucket,
        key,
        region=region,
        options=GetOptions(parse=True, gzipped=gzipped),
        client=client,
    )


def put_object(
    bucket: str,
    key: str,
    body: Any,
    region: Optional[str] = None,
    client: Optional[S3Client] = None,
) -> None:
    """Write an object in a single request.

    Strings and bytes are stored as-is; any other value is stored as JSON.

    Raises:
        TransportError: If the request fails
        ValueError: If a structured body holds NaN or an infinite float
    """
    ref, client = _resolve(bucket, key, region, client)
    client.put_object(ref, body)


def upload_stream(
    bucket: str,
    key: str,
    source: Any,
    region: Optional[str] = None,
    options: Optional[UploadOptions] = None,
    client: Optional[S3Client] = None,
) -> UploadResult:
    """Upload a stream with a parallel multipart upload.

    Args:
        bucket: Bucket name
        key: Object key
        source: File-like object or iterable of byte chunks
        region: Region override
        options: Progress, part size and concurrency options
        client: S3Client to use

    Returns:
        UploadResult whose ``location`` is ``bucket/key``

    Raises:
        ConfigurationError: If the transfer settings in the environment are invalid
        UploadError: If the upload fails; the session is aborted first
    """
    ref, client = _resolve(bucket, key, region, client)
    uploader = MultipartUploader.from_settings(client, load_settings())
    return uploader.upload(ref, source, options)
