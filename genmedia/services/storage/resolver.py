"""Resolve caller-supplied media identifiers to local files."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from .exceptions import NotFoundError
from .interfaces import RetrievedFile, StorageBackend

logger = logging.getLogger(__name__)


def is_probably_windows_abs(path: str) -> bool:
    if not path or len(path) < 3:
        return False
    return path[1] == ':' and path[2] in ('\\', '/')


def is_absolute_local_path(value: str) -> bool:
    if not value:
        return False
    if is_probably_windows_abs(value):
        return True
    return os.path.isabs(value)


def _resolve(backend: StorageBackend, identifier: str) -> RetrievedFile:
    if is_absolute_local_path(identifier):
        if os.path.isfile(identifier):
            return RetrievedFile(local_path=identifier)
        # An absolute path is never reinterpreted as an object key
        raise NotFoundError(f"Local file not found: {identifier}", key=identifier)

    if backend.is_remote:
        return backend.retrieve(identifier)

    try:
        return backend.retrieve(identifier)
    except NotFoundError:
        # Legacy local workflows pass paths relative to the working directory
        if os.path.isfile(identifier):
            logger.debug(f"Resolved {identifier} as a relative local path")
            return RetrievedFile(local_path=identifier)
        raise NotFoundError(f"File not found: {identifier}", key=identifier)


@contextmanager
def resolve_input_path(backend: StorageBackend, identifier: str) -> Iterator[str]:
    """
    Yield a local path for an absolute path, object key or relative path.

    Transient downloads are removed when the block exits, whether or not it
    raised.

    Raises:
        ValueError: if the identifier is empty
        NotFoundError: if nothing matches the identifier
        TransientBackendError: if the backend failed while retrieving
    """
    identifier = (identifier or '').strip()
    if not identifier:
        raise ValueError('Empty input path')

    retrieved = _resolve(backend, identifier)
    try:
        yield retrieved.local_path
    finally:
        retrieved.cleanup()
