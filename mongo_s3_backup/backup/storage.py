"""
S3 client for backup archives.

Wraps list/put/get/delete against one bucket. Every remote key is resolved
relative to the optional destination prefix of the store.
"""

import os
import posixpath
from typing import Optional, List
import boto3
from botocore.exceptions import ClientError, BotoCoreError

from mongo_s3_backup.models import RemoteObject, StoreDescriptor


# Use multipart upload for files larger than 100MB
MULTIPART_THRESHOLD = 100 * 1024 * 1024
# 10MB chunks
MULTIPART_CHUNK_SIZE = 10 * 1024 * 1024
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class StorageError(Exception):
    """Raised when a store operation fails. Carries HTTP status and body when known."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


def _status_of(response: dict) -> Optional[int]:
    return response.get('ResponseMetadata', {}).get('HTTPStatusCode')


def _client_error(action: str, e: ClientError) -> StorageError:
    status = _status_of(e.response)
    error = e.response.get('Error', {})
    error_code = error.get('Code', 'Unknown')
    body = error.get('Message') or str(e)
    return StorageError(f"S3 {action} failed ({error_code}): {body}", status=status, body=body)


class S3Storage:
    """
    Handler for archives stored in an S3 bucket.

    Keys passed in and returned are relative to `destination`; the prefix is
    joined in before every request.
    """

    def __init__(self, access_key: str, secret_key: str, bucket_name: str,
                 destination: Optional[str] = None, encrypt: bool = False,
                 region: Optional[str] = None, endpoint_url: Optional[str] = None):
        """
        Initialize S3 storage handler.

        Args:
            access_key: AWS access key ID
            secret_key: AWS secret access key
            bucket_name: S3 bucket name
            destination: Optional path prefix inside the bucket
            encrypt: Request AES256 server-side encryption on upload
            region: AWS region (default: us-east-1)
            endpoint_url: Custom endpoint for S3-compatible stores
        """
        self.bucket_name = bucket_name
        self.destination = destination
        self.encrypt = encrypt
        self.region = region or 'us-east-1'

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=self.region,
                endpoint_url=endpoint_url
            )
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    @classmethod
    def from_descriptor(cls, store: StoreDescriptor) -> 'S3Storage':
        return cls(
            access_key=store.key,
            secret_key=store.secret,
            bucket_name=store.bucket,
            destination=store.destination,
            encrypt=store.encrypt,
            region=store.region,
            endpoint_url=store.endpoint
        )

    @property
    def prefix(self) -> str:
        """Destination prefix normalized to 'a/b/' form, or '' for the bucket root."""
        if not self.destination:
            return ''
        prefix = self.destination.strip('/')
        return f"{prefix}/" if prefix else ''

    def resolve_key(self, key: str) -> str:
        """Join the destination prefix with a key."""
        return posixpath.join(self.prefix, key.lstrip('/'))

    def list_objects(self) -> List[RemoteObject]:
        """
        List every object under the destination prefix.

        Returns:
            List of RemoteObject with keys relative to the prefix

        Raises:
            StorageError: If listing fails
        """
        prefix = self.prefix
        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get('Contents', []):
                    objects.append(RemoteObject(
                        key=obj['Key'][len(prefix):],
                        last_modified=obj['LastModified'],
                        size=obj.get('Size', 0)
                    ))

            return objects

        except ClientError as e:
            raise _client_error('list', e)
        except BotoCoreError as e:
            raise StorageError(f"S3 list failed: {e}")

    def upload(self, local_path: str, remote_key: str) -> str:
        """
        Upload a local file under remote_key.

        Returns:
            Full S3 key of the uploaded object

        Raises:
            StorageError: If the file is missing or S3 does not answer 200
        """
        if not os.path.exists(local_path):
            raise StorageError(f"Local file not found: {local_path}")

        s3_key = self.resolve_key(remote_key)

        try:
            if os.path.getsize(local_path) > MULTIPART_THRESHOLD:
                self._multipart_upload(local_path, s3_key)
            else:
                self._simple_upload(local_path, s3_key)
        except ClientError as e:
            raise _client_error('upload', e)
        except BotoCoreError as e:
            raise StorageError(f"S3 upload failed: {e}")

        return s3_key

    def _extra_args(self) -> dict:
        if self.encrypt:
            return {'ServerSideEncryption': 'AES256'}
        return {}

    def _simple_upload(self, local_path: str, s3_key: str):
        with open(local_path, 'rb') as f:
            response = self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=f,
                **self._extra_args()
            )

        status = _status_of(response)
        if status != 200:
            raise StorageError(
                f"Expected a 200 response from S3, got {status}",
                status=status,
                body=str(response.get('Error', response))
            )

    def _multipart_upload(self, local_path: str, s3_key: str):
        """Upload a large file in parts; the upload is aborted on any failure."""
        response = self.s3_client.create_multipart_upload(
            Bucket=self.bucket_name,
            Key=s3_key,
            **self._extra_args()
        )
        upload_id = response['UploadId']

        parts = []

        try:
            with open(local_path, 'rb') as f:
                part_number = 1

                while True:
                    data = f.read(MULTIPART_CHUNK_SIZE)
                    if not data:
                        break

                    response = self.s3_client.upload_part(
                        Bucket=self.bucket_name,
                        Key=s3_key,
                        PartNumber=part_number,
                        UploadId=upload_id,
                        Body=data
                    )

                    parts.append({
                        'PartNumber': part_number,
                        'ETag': response['ETag']
                    })

                    part_number += 1

            response = self.s3_client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=s3_key,
                UploadId=upload_id,
                MultipartUpload={'Parts': parts}
            )

            status = _status_of(response)
            if status != 200:
                raise StorageError(
                    f"Expected a 200 response from S3, got {status}",
                    status=status,
                    body=str(response)
                )

        except BaseException:
            try:
                self.s3_client.abort_multipart_upload(
                    Bucket=self.bucket_name,
                    Key=s3_key,
                    UploadId=upload_id
                )
            except (ClientError, BotoCoreError):
                pass
            raise

    def download(self, remote_key: str, local_path: str) -> str:
        """
        Download remote_key into local_path, writing the body in chunks.

        The local file is closed before any error is reported.

        Raises:
            StorageError: If S3 does not answer 200
        """
        s3_key = self.resolve_key(remote_key)
        error = None

        with open(local_path, 'wb') as f:
            try:
                response = self.s3_client.get_object(Bucket=self.bucket_name, Key=s3_key)
                status = _status_of(response)
                body = response['Body']

                if status != 200:
                    detail = body.read().decode('utf-8', errors='replace')
                    error = StorageError(
                        f"Expected a 200 response from S3, got {status}",
                        status=status,
                        body=detail
                    )
                else:
                    for chunk in body.iter_chunks(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
            except ClientError as e:
                error = _client_error('download', e)
            except BotoCoreError as e:
                error = StorageError(f"S3 download failed: {e}")

        if error is not None:
            raise error

        return local_path

    def delete(self, remote_key: str):
        """
        Delete remote_key.

        Raises:
            StorageError: If S3 does not answer 204
        """
        s3_key = self.resolve_key(remote_key)

        try:
            response = self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=s3_key
            )
        except ClientError as e:
            raise _client_error('delete', e)
        except BotoCoreError as e:
            raise StorageError(f"S3 delete failed: {e}")

        status = _status_of(response)
        if status != 204:
            raise StorageError(
                f"Expected a 204 response from S3, got {status}",
                status=status,
                body=str(response)
            )

