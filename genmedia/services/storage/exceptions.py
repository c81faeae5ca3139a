"""
Custom exceptions for storage backends.
"""


class StorageError(Exception):
    """Base exception for storage errors."""
    pass


class ConfigurationError(StorageError):
    """Invalid endpoint, credentials or bucket access while building a backend."""
    pass


class NotFoundError(StorageError):
    """Requested object or path does not exist."""

    def __init__(self, message: str, key: str = None):
        super().__init__(message)
        self.key = key


class TransientBackendError(StorageError):
    """Filesystem or object-store failure during a request operation."""

    def __init__(self, message: str, backend: str = None, key: str = None):
        super().__init__(message)
        self.backend = backend
        self.key = key


class SweepIterationError(StorageError):
    """Listing or deletion failure inside a background sweep tick."""

    def __init__(self, message: str, key: str = None):
        super().__init__(message)
        self.key = key


class MediaDownloadError(StorageError):
    """Media could not be downloaded from a caller-supplied URL."""

    def __init__(self, message: str, url: str = None, status_code: int = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
