"""S3-compatible storage backend (AWS S3 / MinIO)."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Optional, Tuple
from urllib.parse import urlsplit

import boto3
from boto3.exceptions import Boto3Error
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from genmedia.utils.file_hash import content_address

from .cleanup import ExpiredObjectSweeper, is_missing_key_error
from .exceptions import ConfigurationError, NotFoundError, TransientBackendError
from .interfaces import RetrievedFile, StorageBackend, StorageResult

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'us-east-1'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(value: datetime) -> str:
    return value.strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_endpoint(endpoint: str, default_use_ssl: bool) -> Tuple[str, bool]:
    """
    Split an endpoint that may carry an http(s):// scheme.

    Returns:
        Tuple of (host[:port], use_ssl). Without a scheme the endpoint is used
        as-is and TLS follows default_use_ssl.
    """
    endpoint = (endpoint or '').strip()
    if '://' in endpoint:
        parsed = urlsplit(endpoint)
        scheme = parsed.scheme.lower()
        if scheme in ('http', 'https'):
            return (parsed.netloc or endpoint), scheme == 'https'
    return endpoint, default_use_ssl


def build_object_key(filename: str, now: datetime) -> str:
    """Date-partitioned key: YYYY/MM/DD/<filename> using the UTC date."""
    return f"{now.astimezone(timezone.utc).strftime('%Y/%m/%d')}/{filename}"


class S3StorageBackend(StorageBackend):
    """S3 storage backend with presigned URLs and a background TTL sweep."""

    def __init__(self, *, endpoint: str, bucket: str, access_key_id: Optional[str] = None,
                 secret_access_key: Optional[str] = None, region: Optional[str] = None,
                 use_ssl: bool = True, presign_ttl: timedelta = timedelta(hours=24),
                 object_ttl: timedelta = timedelta(hours=24),
                 cleanup_interval: timedelta = timedelta(hours=1),
                 client=None, start_sweeper: bool = True):
        if not bucket:
            raise ConfigurationError('S3 bucket name is required')
        self.bucket = bucket
        self.region = region or DEFAULT_REGION
        self.presign_ttl = presign_ttl
        self.object_ttl = object_ttl
        self.cleanup_interval = cleanup_interval
        self.host, self.use_ssl = parse_endpoint(endpoint, use_ssl)

        if client is None:
            if not self.host:
                raise ConfigurationError('S3 endpoint is required')
            client = self._build_client(access_key_id, secret_access_key)
        self._client = client

        self._ensure_bucket()

        self._sweeper = ExpiredObjectSweeper(self._client, self.bucket, self.object_ttl, self.cleanup_interval)
        if start_sweeper:
            self._sweeper.start()

    @property
    def is_remote(self) -> bool:
        return True

    @property
    def endpoint_url(self) -> str:
        return f"{'https' if self.use_ssl else 'http'}://{self.host}"

    @property
    def sweeper(self) -> ExpiredObjectSweeper:
        return self._sweeper

    def _build_client(self, access_key_id, secret_access_key):
        client_kwargs = {
            'service_name': 's3',
            'endpoint_url': self.endpoint_url,
            'region_name': self.region,
            'config': Config(signature_version='s3v4', s3={'addressing_style': 'path'}),
        }
        if access_key_id:
            client_kwargs['aws_access_key_id'] = access_key_id
        if secret_access_key:
            client_kwargs['aws_secret_access_key'] = secret_access_key

        try:
            return boto3.client(**client_kwargs)
        except (BotoCoreError, ValueError) as exc:
            raise ConfigurationError(f"Failed to create S3 client: {exc}") from exc

    def _ensure_bucket(self) -> None:
        """Check the bucket exists and create it if it does not."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as exc:
            if not is_missing_key_error(exc) and not _is_missing_bucket_error(exc):
                raise ConfigurationError(f"Failed to check bucket existence: {exc}") from exc
        except BotoCoreError as exc:
            raise ConfigurationError(f"Failed to check bucket existence: {exc}") from exc

        logger.info(f"Bucket {self.bucket} does not exist, creating...")
        create_kwargs = {'Bucket': self.bucket}
        if self.region != DEFAULT_REGION:
            create_kwargs['CreateBucketConfiguration'] = {'LocationConstraint': self.region}
        try:
            self._client.create_bucket(**create_kwargs)
        except ClientError as exc:
            code = str(((getattr(exc, 'response', {}) or {}).get('Error') or {}).get('Code') or '')
            if code not in ('BucketAlreadyOwnedByYou', 'BucketAlreadyExists'):
                raise ConfigurationError(f"Failed to create bucket {self.bucket}: {exc}") from exc
        except BotoCoreError as exc:
            raise ConfigurationError(f"Failed to create bucket {self.bucket}: {exc}") from exc
        logger.info(f"Bucket {self.bucket} created successfully")

    def store(self, data: bytes, mime_type: str, prefix: str) -> StorageResult:
        content_hash, filename = content_address(data, mime_type, prefix)
        now = _utcnow()
        object_key = build_object_key(filename, now)

        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=object_key,
                Body=data,
                ContentLength=len(data),
                ContentType=mime_type,
                Metadata={
                    'created-at': _rfc3339(now),
                    'expires-at': _rfc3339(now + self.object_ttl),
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransientBackendError(f"Failed to upload to S3: {exc}", backend='s3', key=object_key) from exc

        try:
            url = self._client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': object_key},
                ExpiresIn=int(self.presign_ttl.total_seconds()),
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransientBackendError(f"Failed to generate presigned URL: {exc}", backend='s3', key=object_key) from exc

        return StorageResult(
            location=url,
            object_key=object_key,
            content_hash=content_hash,
            mime_type=mime_type,
            size=len(data),
            expires_at=now + self.presign_ttl,
        )

    def retrieve(self, object_key: str) -> RetrievedFile:
        suffix = PurePosixPath(object_key).suffix
        fd, tmp_path = tempfile.mkstemp(prefix='genmedia_s3_', suffix=suffix)
        os.close(fd)
        try:
            self._client.download_file(self.bucket, object_key, tmp_path)
        except ClientError as exc:
            _remove_file(tmp_path)
            if is_missing_key_error(exc):
                raise NotFoundError(f"Object not found in bucket {self.bucket}: {object_key}", key=object_key) from exc
            raise TransientBackendError(f"Failed to download {object_key}: {exc}", backend='s3', key=object_key) from exc
        except (BotoCoreError, Boto3Error, OSError) as exc:
            # s3transfer gives up with boto3's RetriesExceededError
            _remove_file(tmp_path)
            raise TransientBackendError(f"Failed to download {object_key}: {exc}", backend='s3', key=object_key) from exc
        except BaseException:
            _remove_file(tmp_path)
            raise
        return RetrievedFile.transient(tmp_path)

    def delete(self, object_key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=object_key)
        except ClientError as exc:
            if is_missing_key_error(exc):
                return
            raise TransientBackendError(f"Failed to delete object: {exc}", backend='s3', key=object_key) from exc
        except BotoCoreError as exc:
            raise TransientBackendError(f"Failed to delete object: {exc}", backend='s3', key=object_key) from exc

    def close(self) -> None:
        self._sweeper.stop()


def _is_missing_bucket_error(exc: ClientError) -> bool:
    code = str(((getattr(exc, 'response', {}) or {}).get('Error') or {}).get('Code') or '')
    return code in ('NoSuchBucket',)


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
