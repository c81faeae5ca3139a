"""Local filesystem storage backend."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from genmedia.utils.file_hash import content_address

from .exceptions import ConfigurationError, NotFoundError, TransientBackendError
from .interfaces import RetrievedFile, StorageBackend, StorageResult

logger = logging.getLogger(__name__)

FILE_MODE = 0o644


def _normalize_key(key: str) -> str:
    key = (key or '').replace('\\', '/').strip()
    while '//' in key:
        key = key.replace('//', '/')
    return key.lstrip('/')


def local_path_from_key(local_root: str, key: str) -> str:
    """Resolve a storage key under local_root and prevent path traversal."""
    safe_key = _normalize_key(key)
    if not safe_key:
        raise ValueError('Empty storage key')
    root = Path(local_root).resolve()
    candidate = (root / Path(*safe_key.split('/'))).resolve()
    try:
        candidate.relative_to(root)
    except ValueError as exc:
        raise ValueError(f"Local storage key resolves outside root: {key}") from exc
    return str(candidate)


class LocalStorageBackend(StorageBackend):
    """Local filesystem implementation for the storage contract."""

    def __init__(self, root: str):
        try:
            Path(root).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(f"Failed to create storage directory {root}: {exc}") from exc
        self.root = str(Path(root).resolve())

    @property
    def is_remote(self) -> bool:
        return False

    def _path_for(self, object_key: str) -> str:
        try:
            return local_path_from_key(self.root, object_key)
        except ValueError as exc:
            raise NotFoundError(str(exc), key=object_key) from exc

    def store(self, data: bytes, mime_type: str, prefix: str) -> StorageResult:
        content_hash, filename = content_address(data, mime_type, prefix)
        dst = os.path.join(self.root, filename)

        # Write next to the target and rename so readers never see a partial file
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix='.tmp_', dir=self.root)
            with os.fdopen(fd, 'wb') as out_f:
                out_f.write(data)
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, dst)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise TransientBackendError(f"Failed to write file {dst}: {exc}", backend='local', key=filename) from exc

        logger.debug(f"Stored {len(data)} bytes at {dst}")
        return StorageResult(
            location=dst,
            object_key=filename,
            content_hash=content_hash,
            mime_type=mime_type,
            size=len(data),
            expires_at=None,
        )

    def retrieve(self, object_key: str) -> RetrievedFile:
        path = self._path_for(object_key)
        if not os.path.isfile(path):
            raise NotFoundError(f"Object not found in local storage: {object_key}", key=object_key)
        return RetrievedFile(local_path=path, cleanup_required=False)

    def delete(self, object_key: str) -> None:
        try:
            path = self._path_for(object_key)
        except NotFoundError:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise TransientBackendError(f"Failed to delete file {path}: {exc}", backend='local', key=object_key) from exc

    def close(self) -> None:
        pass
