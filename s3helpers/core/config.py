"""Configuration management for s3helpers.

This module provides centralized configuration using pydantic-settings.
All configuration is loaded from environment variables prefixed with
``S3_HELPERS_``. Nothing is read from or written to configuration files.
"""

from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from s3helpers.core.exceptions import ConfigurationError

DEFAULT_REGION = "eu-central-1"

# S3 rejects multipart parts smaller than 5 MiB (except the last one)
MIN_PART_SIZE = 5 * 1024 * 1024

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Every field has a default, so ``Settings()`` always succeeds on a bare
    environment. Credentials left unset fall back to boto3's own lookup
    chain (environment, shared credentials file, instance profile).

    Attributes:
        # S3 Connection (4 fields)
        region: Region used when a call does not name one
        endpoint_url: Custom endpoint (MinIO, LocalStack)
        access_key_id: Access key ID
        secret_access_key: Secret access key

        # Transfer Tuning (3 fields)
        multipart_part_size: Size in bytes of each multipart part
        multipart_max_concurrency: Max parts uploaded in parallel
        read_chunk_size: Chunk size in bytes when draining read streams

        # Application Configuration (1 field)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    model_config = SettingsConfigDict(
        env_prefix="S3_HELPERS_",
        case_sensitive=False,
        extra="ignore",
    )

    # S3 Connection (4 fields)
    region: str = Field(
        default=DEFAULT_REGION,
        description="Region used when a call does not name one",
    )
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint (MinIO, LocalStack)",
    )
    access_key_id: Optional[str] = Field(
        default=None,
        description="Access key ID",
    )
    secret_access_key: Optional[str] = Field(
        default=None,
        description="Secret access key",
    )

    # Transfer Tuning (3 fields)
    multipart_part_size: int = Field(
        default=8 * 1024 * 1024,
        description="Size in bytes of each multipart part",
        ge=MIN_PART_SIZE,
    )
    multipart_max_concurrency: int = Field(
        default=4,
        description="Max parts uploaded in parallel",
        gt=0,
    )
    read_chunk_size: int = Field(
        default=64 * 1024,
        description="Chunk size in bytes when draining read streams",
        gt=0,
    )

    # Application Configuration (1 field)
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate that region is not blank.

        Args:
            v: The region value

        Returns:
            The stripped region

        Raises:
            ValueError: If region is empty
        """
        v = v.strip()
        if not v:
            raise ValueError("region must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log_level and check loguru knows it."""
        v = v.strip().upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v


def load_settings() -> Settings:
    """Load Settings from the environment.

    Raises:
        ConfigurationError: If an ``S3_HELPERS_*`` variable fails validation
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid s3helpers settings: {', '.join(fields)}",
            details={"fields": fields},
        ) from e
