"""
Process-wide logging configuration.
"""

import logging
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Client libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ('botocore', 'boto3', 's3transfer', 'urllib3', 'httpx', 'httpcore')


def configure_logging(level=None, stream=None):
    """Send all logs to stream (stdout by default) at LOG_LEVEL (default INFO)."""
    log_level = (level or os.environ.get('LOG_LEVEL', 'INFO')).upper()
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    formatter = logging.Formatter(LOG_FORMAT)
    handler.setFormatter(formatter)

    # Get the root logger and clear any existing handlers to avoid duplicates
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root_logger
