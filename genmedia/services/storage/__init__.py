"""Media storage backends (local filesystem and S3/MinIO) behind one contract."""

from .exceptions import (
    ConfigurationError,
    MediaDownloadError,
    NotFoundError,
    StorageError,
    SweepIterationError,
    TransientBackendError,
)
from .factory import StorageSettings, create_storage
from .interfaces import RetrievedFile, StorageBackend, StorageResult
from .local import LocalStorageBackend
from .resolver import resolve_input_path
from .s3 import S3StorageBackend

__all__ = [
    'ConfigurationError',
    'MediaDownloadError',
    'NotFoundError',
    'StorageError',
    'SweepIterationError',
    'TransientBackendError',
    'StorageSettings',
    'create_storage',
    'RetrievedFile',
    'StorageBackend',
    'StorageResult',
    'LocalStorageBackend',
    'resolve_input_path',
    'S3StorageBackend',
]
