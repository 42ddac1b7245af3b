"""Storage configuration for S3-compatible object storage.

Builds the adapter configuration from application settings and validates it.
Supports both MinIO (development) and AWS S3 (production) with the same interface.
"""

from dataclasses import dataclass
from typing import Optional

from config import Settings, get_settings


@dataclass
class StorageConfig:
    """Configuration for S3-compatible object storage.

    Attributes:
        endpoint_url: S3 endpoint URL (e.g., 'http://localhost:9000' for MinIO,
                      None for AWS S3 which uses default regional endpoints)
        access_key: S3 access key ID
        secret_key: S3 secret access key
        bucket_name: Bucket used as the default document container
        region: AWS region (default: 'us-east-1')
        call_timeout_seconds: Bound on each store call
    """
    endpoint_url: Optional[str]
    access_key: str
    secret_key: str
    bucket_name: str
    region: str = "us-east-1"
    call_timeout_seconds: float = 30.0


def load_storage_config(settings: Optional[Settings] = None) -> StorageConfig:
    """Build storage configuration from settings (environment by default).

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    settings = settings or get_settings()
    config = StorageConfig(
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        access_key=settings.S3_ACCESS_KEY_ID,
        secret_key=settings.S3_SECRET_ACCESS_KEY,
        bucket_name=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
        call_timeout_seconds=settings.STORE_CALL_TIMEOUT_SECONDS,
    )
    validate_storage_config(config)
    return config


def validate_storage_config(config: StorageConfig) -> None:
    """Validate storage configuration.

    Raises:
        ValueError: If configuration is invalid
    """
    if not config.access_key:
        raise ValueError("Storage access_key is required")

    if not config.secret_key:
        raise ValueError("Storage secret_key is required")

    if not config.bucket_name:
        raise ValueError("Storage bucket_name is required")

    if config.call_timeout_seconds <= 0:
        raise ValueError("Storage call_timeout_seconds must be positive")

    if config.endpoint_url:
        # MinIO configuration
        if not config.endpoint_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid endpoint_url: {config.endpoint_url}. "
                "Must start with http:// or https://"
            )
    else:
        # AWS S3 configuration
        if not config.region:
            raise ValueError("AWS region is required when using S3 (S3_ENDPOINT_URL not set)")
