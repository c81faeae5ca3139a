"""Storage interfaces and shared dataclasses for media storage backends."""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional


@dataclass(frozen=True)
class StorageResult:
    """Result of storing an object."""

    location: str  # absolute path (local) | presigned URL (s3)
    object_key: str
    content_hash: str
    mime_type: str
    size: int
    expires_at: Optional[datetime] = None  # presigned URL expiry, s3 only

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location': self.location,
            'object_key': self.object_key,
            'content_hash': self.content_hash,
            'mime_type': self.mime_type,
            'size': self.size,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@dataclass
class RetrievedFile:
    """Local filesystem path prepared for reading, plus its release action."""

    local_path: str
    cleanup_required: bool = False
    _release: Optional[Callable[[], None]] = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _released: bool = field(default=False, repr=False)

    @classmethod
    def transient(cls, local_path: str) -> 'RetrievedFile':
        """A temporary download that is deleted on cleanup."""
        return cls(local_path=local_path, cleanup_required=True,
                   _release=lambda: _remove_file(local_path))

    def cleanup(self) -> None:
        """Release the file. Only the first call has an effect."""
        with self._lock:
            if self._released:
                return
            self._released = True
        if self.cleanup_required and self._release is not None:
            self._release()


class StorageBackend(ABC):
    """Contract shared by the local and remote storage backends."""

    @property
    @abstractmethod
    def is_remote(self) -> bool:
        ...

    @abstractmethod
    def store(self, data: bytes, mime_type: str, prefix: str) -> StorageResult:
        """Persist data under its content address and return where it went."""

    @abstractmethod
    def retrieve(self, object_key: str) -> RetrievedFile:
        """Make a stored object available as a local file."""

    @abstractmethod
    def delete(self, object_key: str) -> None:
        """Remove an object. Deleting an absent key succeeds."""

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
