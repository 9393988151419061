"""
Shared pytest fixtures for mongo-s3-backup tests.

This module provides fixtures for:
- Source/store descriptors and a full BackupConfig
- Mocked S3 (moto) with a ready bucket
- A workspace root under tmp_path
- Remote object listings with controlled LastModified times
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import boto3
from moto import mock_aws

from mongo_s3_backup.models import SourceDescriptor, StoreDescriptor, BackupConfig, RemoteObject
from mongo_s3_backup.backup.storage import S3Storage


@pytest.fixture
def source():
    """The 'orders' database on localhost, without credentials."""
    return SourceDescriptor(host='localhost', port=27017, db='orders')


@pytest.fixture
def store():
    return StoreDescriptor(key='test_access_key', secret='test_secret_key', bucket='test-bucket')


@pytest.fixture
def backup_config(source, store):
    return BackupConfig(sources=[source], store=store, num_of_archives=2)


@pytest.fixture
def config_file(tmp_path):
    """
    Write a JSON config file and return its path.
    """
    data = {
        'mongodb': {
            'host': 'localhost',
            'port': 27017,
            'db': 'orders',
            'username': 'admin',
            'password': 'secret'
        },
        's3': {
            'key': 'test_access_key',
            'secret': 'test_secret_key',
            'bucket': 'test-bucket',
            'destination': '/backups',
            'encrypt': True
        },
        'numOfArchives': 3,
        'cron': {
            'time': '02:30',
            'timezone': 'Europe/Amsterdam'
        }
    }
    path = tmp_path / 'config.json'
    path.write_text(json.dumps(data))
    return path


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture
def storage(mock_s3):
    """S3Storage pointing at the moto bucket."""
    return S3Storage(
        access_key='test_access_key',
        secret_key='test_secret_key',
        bucket_name='test-bucket'
    )


@pytest.fixture
def temp_root(tmp_path):
    """Workspace root; not created up front."""
    return str(tmp_path / 'mongodb_s3_backup')


@pytest.fixture
def make_remote_objects():
    """
    Build RemoteObjects whose LastModified increases in list order.

    make_remote_objects('a', 'b') -> 'a' is oldest, 'b' newest.
    """
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _make(*keys):
        return [
            RemoteObject(key=key, last_modified=base + timedelta(days=i), size=10)
            for i, key in enumerate(keys)
        ]

    return _make


@pytest.fixture
def mock_storage():
    """MagicMock standing in for S3Storage."""
    storage = MagicMock(spec=S3Storage)
    storage.bucket_name = 'test-bucket'
    storage.list_objects.return_value = []
    return storage
