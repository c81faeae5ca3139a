"""Factory for configuring media storage backends from validated settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from .exceptions import ConfigurationError
from .interfaces import StorageBackend
from .local import LocalStorageBackend
from .s3 import S3StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageSettings:
    s3_enabled: bool = False
    output_dir: str = '/tmp/gemini-mcp'
    s3_endpoint: Optional[str] = None
    s3_bucket: str = 'gemini-media'
    s3_region: str = 'us-east-1'
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = field(default=None, repr=False)
    s3_use_ssl: bool = True
    presign_ttl: timedelta = timedelta(hours=24)
    object_ttl: timedelta = timedelta(hours=24)
    cleanup_interval: timedelta = timedelta(hours=1)


def validate_s3_settings(settings: StorageSettings) -> None:
    missing = [name for name, value in (
        ('S3_ENDPOINT', settings.s3_endpoint),
        ('S3_ACCESS_KEY_ID', settings.s3_access_key_id),
        ('S3_SECRET_ACCESS_KEY', settings.s3_secret_access_key),
        ('S3_BUCKET', settings.s3_bucket),
    ) if not value]
    if missing:
        raise ConfigurationError(f"S3 storage enabled but not configured: missing {', '.join(missing)}")
    for name, value in (
        ('S3_PRESIGN_TTL', settings.presign_ttl),
        ('S3_OBJECT_TTL', settings.object_ttl),
        ('S3_CLEANUP_INTERVAL', settings.cleanup_interval),
    ):
        if value <= timedelta(0):
            raise ConfigurationError(f"{name} must be a positive duration, got {value}")


def build_local_backend(settings: StorageSettings) -> LocalStorageBackend:
    if not settings.output_dir:
        raise ConfigurationError('OUTPUT_DIR is required for local storage')
    return LocalStorageBackend(settings.output_dir)


def build_s3_backend(settings: StorageSettings, *, start_sweeper: bool = True) -> S3StorageBackend:
    validate_s3_settings(settings)
    return S3StorageBackend(
        endpoint=settings.s3_endpoint,
        bucket=settings.s3_bucket,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        region=settings.s3_region,
        use_ssl=settings.s3_use_ssl,
        presign_ttl=settings.presign_ttl,
        object_ttl=settings.object_ttl,
        cleanup_interval=settings.cleanup_interval,
        start_sweeper=start_sweeper,
    )


def create_storage(settings: StorageSettings, *, start_sweeper: bool = True) -> StorageBackend:
    """Build the backend selected by settings. Raises ConfigurationError on failure."""
    if settings.s3_enabled:
        logger.info(f"Initializing S3 storage (endpoint: {settings.s3_endpoint}, bucket: {settings.s3_bucket})")
        return build_s3_backend(settings, start_sweeper=start_sweeper)

    logger.info(f"Initializing local storage (directory: {settings.output_dir})")
    return build_local_backend(settings)
