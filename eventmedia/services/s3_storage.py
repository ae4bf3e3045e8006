"""
S3-compatible storage implementation.
Works with Cloudflare R2, AWS S3, MinIO, and other S3-compatible services.
"""
import asyncio
import logging
from functools import partial
from typing import BinaryIO, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from eventmedia.errors import (
    BackendUnavailableError,
    SizeMismatchError,
    StorageNotConfiguredError,
)
from eventmedia.services.metrics import record_delete, record_upload
from eventmedia.services.storage_backend import StorageBackend

logger = logging.getLogger("eventmedia.storage.s3")

DEFAULT_CACHE_CONTROL = "public, max-age=31536000"

NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')
BUCKET_OWNED_CODES = ('BucketAlreadyOwnedByYou', 'BucketAlreadyExists')


def _error_code(error: ClientError) -> Optional[str]:
    return error.response.get('Error', {}).get('Code')


class S3Storage(StorageBackend):
    """S3-compatible storage with support for Cloudflare R2, AWS S3, MinIO"""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        region_name: str = "auto",
        public_url_base: Optional[str] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_attempts: int = 3,
    ):
        """
        Initialize S3-compatible storage.

        Args:
            bucket_name: Bucket name
            endpoint_url: S3 endpoint (None for AWS, custom for R2/MinIO)
            access_key_id: Access key
            secret_access_key: Secret key
            region_name: AWS region or 'auto' for R2
            public_url_base: Base URL the bucket is publicly served from
            connect_timeout: Seconds to wait for a connection
            read_timeout: Seconds to wait for a response
            max_attempts: Total attempts per request, including botocore's own retries

        Raises:
            StorageNotConfiguredError: If bucket name or credentials are missing
        """
        if not bucket_name:
            raise StorageNotConfiguredError("remote storage bucket name not configured")
        if not access_key_id or not secret_access_key:
            raise StorageNotConfiguredError("remote storage credentials not configured")

        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url.rstrip('/') if endpoint_url else None
        self.region_name = region_name
        self.public_url_base = public_url_base.rstrip('/') if public_url_base else None

        # Initialize S3 client
        self.s3_client = boto3.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region_name,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'},
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={'max_attempts': max_attempts, 'mode': 'standard'},
            )
        )

    @property
    def name(self) -> str:
        return "s3"

    async def _call(self, method: str, **kwargs):
        """Run a blocking client call in the executor"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None, partial(getattr(self.s3_client, method), **kwargs)
        )

    async def upload(
        self,
        key: str,
        reader: BinaryIO,
        content_type: str,
        size: int,
        cache_control: Optional[str] = None,
    ) -> str:
        """Upload an object and return its public URL"""
        key = key.lstrip('/')
        body = reader.read()
        if len(body) != size:
            record_upload(self.name, size, ok=False)
            raise SizeMismatchError(key, size, len(body))

        try:
            await self._call(
                'put_object',
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
                ContentLength=size,
                CacheControl=cache_control or DEFAULT_CACHE_CONTROL,
            )
        except (ClientError, BotoCoreError) as e:
            record_upload(self.name, size, ok=False)
            raise BackendUnavailableError(f"failed to upload {key} to remote storage: {e}") from e

        record_upload(self.name, size, ok=True)
        logger.info(f"Uploaded {key} to bucket {self.bucket_name}")
        return self.get_url(key)

    async def delete(self, key: str) -> None:
        key = key.lstrip('/')
        try:
            await self._call('delete_object', Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            record_delete(self.name, ok=False)
            raise BackendUnavailableError(f"failed to delete {key} from remote storage: {e}") from e
        record_delete(self.name, ok=True)

    def get_url(self, key: str) -> str:
        """Get public URL for an object"""
        key = key.lstrip('/')
        if self.public_url_base:
            return f"{self.public_url_base}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    async def generate_presigned_url(self, key: str, content_type: str, expiration: int) -> str:
        """Generate a presigned PUT URL locked to content_type"""
        key = key.lstrip('/')
        try:
            return await self._call(
                'generate_presigned_url',
                ClientMethod='put_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key,
                    'ContentType': content_type,
                },
                ExpiresIn=int(expiration),
            )
        except (ClientError, BotoCoreError) as e:
            raise BackendUnavailableError(f"failed to generate presigned URL: {e}") from e

    async def exists(self, key: str) -> bool:
        key = key.lstrip('/')
        try:
            # head_object is cheap and does not download the body
            await self._call('head_object', Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise BackendUnavailableError(f"failed to check if object exists: {e}") from e
        except BotoCoreError as e:
            raise BackendUnavailableError(f"failed to check if object exists: {e}") from e
        return True

    async def list_keys(self, prefix: str = "") -> List[str]:
        prefix = prefix.lstrip('/')

        def collect() -> List[str]:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            keys = []
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                keys.extend(obj['Key'] for obj in page.get('Contents', []))
            return sorted(keys)

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, collect)
        except (ClientError, BotoCoreError) as e:
            raise BackendUnavailableError(f"failed to list objects: {e}") from e

    # ------------------------------------------------------------------
    # Bucket lifecycle
    # ------------------------------------------------------------------

    async def create_bucket(self) -> None:
        """Create the bucket. An existing bucket we own is fine."""
        try:
            await self._call('create_bucket', Bucket=self.bucket_name)
            logger.info(f"Created bucket: {self.bucket_name}")
        except ClientError as e:
            if _error_code(e) in BUCKET_OWNED_CODES:
                logger.info(f"Bucket {self.bucket_name} already exists")
                return
            raise BackendUnavailableError(f"failed to create bucket: {e}") from e
        except BotoCoreError as e:
            raise BackendUnavailableError(f"failed to create bucket: {e}") from e

    async def set_bucket_cors(self, allowed_origins: Optional[List[str]] = None) -> None:
        """Allow browsers to fetch objects and PUT to presigned URLs"""
        cors = {
            'CORSRules': [
                {
                    'AllowedHeaders': ['*'],
                    'AllowedMethods': ['GET', 'PUT', 'POST', 'DELETE', 'HEAD'],
                    'AllowedOrigins': allowed_origins or ['*'],
                    'ExposeHeaders': ['ETag'],
                    'MaxAgeSeconds': 3000,
                }
            ]
        }
        try:
            await self._call('put_bucket_cors', Bucket=self.bucket_name, CORSConfiguration=cors)
        except (ClientError, BotoCoreError) as e:
            raise BackendUnavailableError(f"failed to set bucket CORS: {e}") from e

    async def health_check(self) -> None:
        """
        Verify the bucket is reachable with the configured credentials.

        Raises:
            BackendUnavailableError: If listing the bucket fails
        """
        try:
            await self._call('list_objects_v2', Bucket=self.bucket_name, MaxKeys=1)
        except (ClientError, BotoCoreError) as e:
            raise BackendUnavailableError(f"remote storage health check failed: {e}") from e
