"""Shared fixtures wired to the in-memory S3 fake."""

from typing import Generator

import pytest

from s3helpers.storage.s3_client import S3Client
from tests.fakes import FakeS3


@pytest.fixture
def fake_s3() -> FakeS3:
    """Empty in-memory S3."""
    return FakeS3()


@pytest.fixture
def s3_client(fake_s3: FakeS3) -> Generator[S3Client, None, None]:
    """S3Client wired to the in-memory fake.

    Yields:
        S3Client bound to eu-central-1
    """
    yield S3Client(client=fake_s3)
