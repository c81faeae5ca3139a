"""
Tests for the S3-compatible storage backend.

The boto3 client is replaced by a MagicMock so no object store is needed.
"""

import hashlib
import os
import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

from boto3.exceptions import RetriesExceededError
from botocore.exceptions import ClientError, EndpointConnectionError

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from genmedia.services.storage import (  # noqa: E402
    ConfigurationError,
    NotFoundError,
    S3StorageBackend,
    TransientBackendError,
)
from genmedia.services.storage.s3 import build_object_key, parse_endpoint  # noqa: E402


def client_error(code, status, operation='Operation'):
    return ClientError(
        {'Error': {'Code': code, 'Message': code}, 'ResponseMetadata': {'HTTPStatusCode': status}},
        operation,
    )


def make_backend(client=None, **kwargs):
    client = client or MagicMock()
    client.generate_presigned_url.return_value = 'https://minio.example/gemini-media/signed'
    params = dict(
        endpoint='minio:9000',
        bucket='gemini-media',
        access_key_id='key',
        secret_access_key='secret',
        presign_ttl=timedelta(hours=2),
        object_ttl=timedelta(hours=24),
        cleanup_interval=timedelta(hours=1),
        client=client,
        start_sweeper=False,
    )
    params.update(kwargs)
    return S3StorageBackend(**params), client


class TestParseEndpoint(unittest.TestCase):

    def test_https_scheme_enables_ssl(self):
        self.assertEqual(parse_endpoint('https://s3.example.com', False), ('s3.example.com', True))

    def test_http_scheme_disables_ssl(self):
        self.assertEqual(parse_endpoint('http://minio:9000', True), ('minio:9000', False))

    def test_no_scheme_uses_flag(self):
        self.assertEqual(parse_endpoint('minio:9000', True), ('minio:9000', True))
        self.assertEqual(parse_endpoint('minio:9000', False), ('minio:9000', False))


class TestBucketBootstrap(unittest.TestCase):

    def test_existing_bucket_is_not_created(self):
        backend, client = make_backend()
        client.head_bucket.assert_called_once_with(Bucket='gemini-media')
        client.create_bucket.assert_not_called()

    def test_missing_bucket_is_created(self):
        client = MagicMock()
        client.head_bucket.side_effect = client_error('404', 404, 'HeadBucket')
        make_backend(client)
        client.create_bucket.assert_called_once_with(Bucket='gemini-media')

    def test_missing_bucket_outside_default_region_sets_location(self):
        client = MagicMock()
        client.head_bucket.side_effect = client_error('NoSuchBucket', 404, 'HeadBucket')
        make_backend(client, region='eu-west-1')
        client.create_bucket.assert_called_once_with(
            Bucket='gemini-media',
            CreateBucketConfiguration={'LocationConstraint': 'eu-west-1'},
        )

    def test_access_denied_is_configuration_error(self):
        client = MagicMock()
        client.head_bucket.side_effect = client_error('403', 403, 'HeadBucket')
        with self.assertRaises(ConfigurationError):
            make_backend(client)

    def test_unreachable_endpoint_is_configuration_error(self):
        client = MagicMock()
        client.head_bucket.side_effect = EndpointConnectionError(endpoint_url='http://minio:9000')
        with self.assertRaises(ConfigurationError):
            make_backend(client)

    def test_create_failure_is_configuration_error(self):
        client = MagicMock()
        client.head_bucket.side_effect = client_error('404', 404, 'HeadBucket')
        client.create_bucket.side_effect = client_error('AccessDenied', 403, 'CreateBucket')
        with self.assertRaises(ConfigurationError):
            make_backend(client)

    def test_builds_boto3_client_from_endpoint(self):
        with patch('genmedia.services.storage.s3.boto3.client') as boto_client:
            S3StorageBackend(endpoint='http://minio:9000', bucket='media', access_key_id='k',
                             secret_access_key='s', use_ssl=True, start_sweeper=False)
        kwargs = boto_client.call_args.kwargs
        self.assertEqual(kwargs['endpoint_url'], 'http://minio:9000')
        self.assertEqual(kwargs['region_name'], 'us-east-1')
        self.assertEqual(kwargs['aws_access_key_id'], 'k')
        self.assertEqual(kwargs['aws_secret_access_key'], 's')


class TestS3Store(unittest.TestCase):

    def setUp(self):
        self.backend, self.client = make_backend()
        self.now = datetime(2024, 12, 23, 10, 30, 0, tzinfo=timezone.utc)
        patcher = patch('genmedia.services.storage.s3._utcnow', return_value=self.now)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_store_uploads_with_date_partitioned_key(self):
        data = b'hello world!'
        digest = hashlib.sha256(data).hexdigest()

        result = self.backend.store(data, 'image/png', 'gemini_image')

        self.assertEqual(result.object_key, f"2024/12/23/gemini_image_{digest[:16]}.png")
        self.assertEqual(result.content_hash, digest)
        self.assertEqual(result.size, 12)
        self.assertEqual(result.location, 'https://minio.example/gemini-media/signed')
        self.assertEqual(result.expires_at, self.now + timedelta(hours=2))

        kwargs = self.client.put_object.call_args.kwargs
        self.assertEqual(kwargs['Bucket'], 'gemini-media')
        self.assertEqual(kwargs['Key'], result.object_key)
        self.assertEqual(kwargs['Body'], data)
        self.assertEqual(kwargs['ContentType'], 'image/png')
        self.assertEqual(kwargs['Metadata'], {
            'created-at': '2024-12-23T10:30:00Z',
            'expires-at': '2024-12-24T10:30:00Z',
        })
        self.client.generate_presigned_url.assert_called_once_with(
            'get_object',
            Params={'Bucket': 'gemini-media', 'Key': result.object_key},
            ExpiresIn=7200,
        )

    def test_same_day_stores_share_key(self):
        first = self.backend.store(b'same', 'video/mp4', 'veo_video')
        second = self.backend.store(b'same', 'video/mp4', 'veo_video')
        self.assertEqual(first.object_key, second.object_key)

    def test_key_date_follows_utc_day(self):
        with patch('genmedia.services.storage.s3._utcnow',
                   return_value=datetime(2024, 12, 23, 23, 59, 59, tzinfo=timezone.utc)):
            before = self.backend.store(b'same', 'image/png', 'p')
        with patch('genmedia.services.storage.s3._utcnow',
                   return_value=datetime(2024, 12, 24, 0, 0, 1, tzinfo=timezone.utc)):
            after = self.backend.store(b'same', 'image/png', 'p')
        self.assertTrue(before.object_key.startswith('2024/12/23/'))
        self.assertTrue(after.object_key.startswith('2024/12/24/'))
        self.assertEqual(before.content_hash, after.content_hash)

    def test_build_object_key_converts_to_utc(self):
        est = timezone(timedelta(hours=-5))
        self.assertEqual(build_object_key('a.png', datetime(2024, 1, 1, 22, 0, tzinfo=est)), '2024/01/02/a.png')

    def test_upload_failure_is_transient_error(self):
        self.client.put_object.side_effect = client_error('SlowDown', 503, 'PutObject')
        with self.assertRaises(TransientBackendError):
            self.backend.store(b'data', 'image/png', 'test')
        self.client.generate_presigned_url.assert_not_called()

    def test_presign_failure_is_transient_error(self):
        self.client.generate_presigned_url.side_effect = client_error('InternalError', 500, 'GetObject')
        with self.assertRaises(TransientBackendError):
            self.backend.store(b'data', 'image/png', 'test')


class TestS3RetrieveDelete(unittest.TestCase):

    def setUp(self):
        self.backend, self.client = make_backend()

    def test_retrieve_downloads_to_transient_file(self):
        def fake_download(bucket, key, path):
            with open(path, 'wb') as f:
                f.write(b'downloaded')

        self.client.download_file.side_effect = fake_download
        retrieved = self.backend.retrieve('2024/12/23/upload_abc.png')

        self.assertTrue(retrieved.cleanup_required)
        self.assertTrue(retrieved.local_path.endswith('.png'))
        with open(retrieved.local_path, 'rb') as f:
            self.assertEqual(f.read(), b'downloaded')

        retrieved.cleanup()
        self.assertFalse(os.path.exists(retrieved.local_path))
        retrieved.cleanup()

    def test_retrieve_missing_raises_not_found_and_removes_temp(self):
        paths = []

        def fake_download(bucket, key, path):
            paths.append(path)
            raise client_error('404', 404, 'HeadObject')

        self.client.download_file.side_effect = fake_download
        with self.assertRaises(NotFoundError):
            self.backend.retrieve('2024/12/23/missing.png')
        self.assertFalse(os.path.exists(paths[0]))

    def test_retrieve_other_errors_are_transient(self):
        self.client.download_file.side_effect = client_error('InternalError', 500, 'GetObject')
        with self.assertRaises(TransientBackendError):
            self.backend.retrieve('2024/12/23/broken.png')

    def test_retrieve_exhausted_retries_are_transient_and_remove_temp(self):
        paths = []

        def fake_download(bucket, key, path):
            paths.append(path)
            raise RetriesExceededError(Exception('read timeout'))

        self.client.download_file.side_effect = fake_download
        with self.assertRaises(TransientBackendError):
            self.backend.retrieve('2024/12/23/slow.png')
        self.assertFalse(os.path.exists(paths[0]))

    def test_retrieve_removes_temp_on_unexpected_error(self):
        paths = []

        def fake_download(bucket, key, path):
            paths.append(path)
            raise RuntimeError('transfer manager crashed')

        self.client.download_file.side_effect = fake_download
        with self.assertRaises(RuntimeError):
            self.backend.retrieve('2024/12/23/interrupted.png')
        self.assertFalse(os.path.exists(paths[0]))

    def test_delete_calls_delete_object(self):
        self.backend.delete('2024/12/23/upload_abc.png')
        self.client.delete_object.assert_called_once_with(Bucket='gemini-media', Key='2024/12/23/upload_abc.png')

    def test_delete_missing_is_not_an_error(self):
        self.client.delete_object.side_effect = client_error('NoSuchKey', 404, 'DeleteObject')
        self.backend.delete('2024/12/23/gone.png')
        self.backend.delete('2024/12/23/gone.png')

    def test_delete_failure_is_transient(self):
        self.client.delete_object.side_effect = client_error('AccessDenied', 403, 'DeleteObject')
        with self.assertRaises(TransientBackendError):
            self.backend.delete('2024/12/23/locked.png')

    def test_is_remote(self):
        self.assertTrue(self.backend.is_remote)


if __name__ == '__main__':
    unittest.main()
