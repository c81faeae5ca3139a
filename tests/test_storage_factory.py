"""
Tests for backend selection in the storage factory.
"""

import os
import sys
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from genmedia.services.storage import (  # noqa: E402
    ConfigurationError,
    LocalStorageBackend,
    S3StorageBackend,
    StorageSettings,
    create_storage,
)


def s3_settings(**overrides):
    values = dict(
        s3_enabled=True,
        s3_endpoint='https://minio.example.com',
        s3_access_key_id='key',
        s3_secret_access_key='secret',
    )
    values.update(overrides)
    return StorageSettings(**values)


class TestCreateStorage(unittest.TestCase):

    def test_local_backend_by_default(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output_dir = os.path.join(tmpdir, 'out')
            storage = create_storage(StorageSettings(output_dir=output_dir))
            self.assertIsInstance(storage, LocalStorageBackend)
            self.assertFalse(storage.is_remote)
            self.assertTrue(os.path.isdir(output_dir))

    def test_s3_backend_when_enabled(self):
        with patch('genmedia.services.storage.s3.boto3.client') as boto_client:
            storage = create_storage(s3_settings(), start_sweeper=False)
        self.assertIsInstance(storage, S3StorageBackend)
        self.assertTrue(storage.is_remote)
        self.assertFalse(storage.sweeper.running)
        self.assertEqual(boto_client.call_args.kwargs['endpoint_url'], 'https://minio.example.com')

    def test_s3_backend_starts_sweeper(self):
        with patch('genmedia.services.storage.s3.boto3.client'):
            storage = create_storage(s3_settings())
        try:
            self.assertTrue(storage.sweeper.running)
        finally:
            storage.close()

    def test_missing_credentials_are_configuration_error(self):
        with self.assertRaises(ConfigurationError) as ctx:
            create_storage(s3_settings(s3_secret_access_key=None))
        self.assertIn('S3_SECRET_ACCESS_KEY', str(ctx.exception))

    def test_non_positive_durations_are_configuration_error(self):
        for field_name in ('presign_ttl', 'object_ttl', 'cleanup_interval'):
            with self.assertRaises(ConfigurationError):
                create_storage(s3_settings(**{field_name: timedelta(0)}))

    def test_settings_repr_hides_secret(self):
        self.assertNotIn('secret', repr(s3_settings()))


if __name__ == '__main__':
    unittest.main()
