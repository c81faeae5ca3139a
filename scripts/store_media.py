#!/usr/bin/env python3
"""Store a local media file through the configured storage backend."""

from __future__ import annotations

import argparse
import json
import mimetypes
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from genmedia.config.logging_setup import configure_logging  # noqa: E402
from genmedia.config.storage_config import load_storage_settings_from_env  # noqa: E402
from genmedia.config.version import get_version  # noqa: E402
from genmedia.services.storage import StorageError, create_storage  # noqa: E402


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description='Store a media file via the configured backend (local directory or S3/MinIO).',
        epilog='Use the printed object_key as the input path of image edit or image-to-video operations.',
    )
    p.add_argument('file_path', nargs='?', help='Absolute path to the file to store')
    p.add_argument('--mime-type', default=None, help='MIME type (guessed from the file name when omitted)')
    p.add_argument('--prefix', default='upload', help="Prefix for the stored object key (default: 'upload')")
    p.add_argument('--version', action='store_true', help='Show version information')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.version:
        print(f"store_media version {get_version()}")
        return 0

    if not args.file_path:
        return _error('file path is required')

    file_path = args.file_path
    if not os.path.isabs(file_path):
        return _error(f"File path must be absolute: {file_path}")
    if not os.path.exists(file_path):
        return _error(f"File not found: {file_path}")
    if os.path.isdir(file_path):
        return _error(f"Path is a directory, not a file: {file_path}")

    mime_type = args.mime_type or mimetypes.guess_type(file_path)[0]
    if not mime_type:
        return _error(f"Cannot determine MIME type of {file_path}; pass --mime-type")

    # stdout carries only the result JSON
    configure_logging(os.environ.get('LOG_LEVEL', 'WARNING'), stream=sys.stderr)
    try:
        with open(file_path, 'rb') as f:
            data = f.read()
        settings = load_storage_settings_from_env()
        with create_storage(settings, start_sweeper=False) as storage:
            result = storage.store(data, mime_type, args.prefix)
    except OSError as exc:
        return _error(f"Failed to read file: {exc}")
    except StorageError as exc:
        return _error(str(exc))

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0


def _error(message):
    print(json.dumps({'error': message}, indent=2), file=sys.stderr)
    return 1


if __name__ == '__main__':
    raise SystemExit(main())
