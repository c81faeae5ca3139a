"""
Storage configuration loaded from environment variables.
"""

import logging
import os
import re
from datetime import timedelta

from dotenv import load_dotenv

from genmedia.services.storage.factory import StorageSettings

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = '/tmp/gemini-mcp'
DEFAULT_BUCKET = 'gemini-media'
DEFAULT_REGION = 'us-east-1'
DEFAULT_PRESIGN_TTL = timedelta(hours=24)
DEFAULT_OBJECT_TTL = timedelta(hours=24)
DEFAULT_CLEANUP_INTERVAL = timedelta(hours=1)

# Transports that serve remote clients and therefore hand out URLs
REMOTE_TRANSPORTS = ('http', 'sse')

_TRUE_VALUES = ('1', 't', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'f', 'false', 'no', 'off')

_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|us|µs|ns|h|m|s)')
_DURATION_UNITS = {
    'h': 3600.0,
    'm': 60.0,
    's': 1.0,
    'ms': 1e-3,
    'us': 1e-6,
    'µs': 1e-6,
    'ns': 1e-9,
}


def parse_duration(value):
    """
    Parse a duration such as '24h', '1h30m', '90s' or '500ms'.

    Args:
        value: Duration string; a bare number is read as seconds

    Returns:
        timedelta

    Raises:
        ValueError: if the string is not a valid duration
    """
    text = (value or '').strip()
    if not text:
        raise ValueError('empty duration')
    if re.fullmatch(r'\d+(?:\.\d+)?', text):
        return timedelta(seconds=float(text))

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return timedelta(seconds=total)


def get_env_or_default(environ, key, default):
    value = environ.get(key)
    return value if value else default


def get_env_bool(environ, key, default):
    value = environ.get(key)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning(f"Invalid boolean {key}={value!r}; using default {default}")
    return default


def get_env_duration(environ, key, default):
    value = environ.get(key)
    if not value:
        return default
    try:
        return parse_duration(value)
    except ValueError:
        logger.warning(f"Invalid duration {key}={value!r}; using default {default}")
        return default


def load_storage_settings_from_env(environ=None, dotenv=True):
    """
    Build StorageSettings from the environment.

    S3 is enabled only when an endpoint and both credentials are configured
    and the server runs with an HTTP-based transport.
    """
    if environ is None:
        if dotenv:
            load_dotenv()
        environ = os.environ

    transport = get_env_or_default(environ, 'TRANSPORT', 'stdio').strip().lower()
    endpoint = environ.get('S3_ENDPOINT', '').strip()
    access_key_id = environ.get('S3_ACCESS_KEY_ID', '').strip()
    secret_access_key = environ.get('S3_SECRET_ACCESS_KEY', '').strip()

    s3_enabled = bool(endpoint and access_key_id and secret_access_key and transport in REMOTE_TRANSPORTS)

    return StorageSettings(
        s3_enabled=s3_enabled,
        output_dir=get_env_or_default(environ, 'OUTPUT_DIR', DEFAULT_OUTPUT_DIR),
        s3_endpoint=endpoint or None,
        s3_bucket=get_env_or_default(environ, 'S3_BUCKET', DEFAULT_BUCKET),
        s3_region=get_env_or_default(environ, 'S3_REGION', DEFAULT_REGION),
        s3_access_key_id=access_key_id or None,
        s3_secret_access_key=secret_access_key or None,
        s3_use_ssl=get_env_bool(environ, 'S3_USE_SSL', True),
        presign_ttl=get_env_duration(environ, 'S3_PRESIGN_TTL', DEFAULT_PRESIGN_TTL),
        object_ttl=get_env_duration(environ, 'S3_OBJECT_TTL', DEFAULT_OBJECT_TTL),
        cleanup_interval=get_env_duration(environ, 'S3_CLEANUP_INTERVAL', DEFAULT_CLEANUP_INTERVAL),
    )
