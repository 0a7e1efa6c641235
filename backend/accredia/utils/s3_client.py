"""
S3 Client Utility - object storage for tenant branding and registrant photos.

This utility wraps the boto3 S3 client. Assets are stored under
``<tenant_slug>/<folder>/<uuid>.<ext>`` so that deleting a tenant can remove
everything under its prefix.

Architecture:
- Singleton S3 client instance, lazily created inside the Flask app context
- Error handling with tuple return pattern (result, error_message)

S3 Configuration:
- S3_ENDPOINT_URL: Optional S3-compatible endpoint (e.g., MinIO)
- S3_REGION: AWS region (default: us-east-1)
- S3_BUCKET_NAME: Bucket name (default: accredia-assets)
- S3_ACCESS_KEY_ID / S3_SECRET_ACCESS_KEY: Credentials
- S3_PUBLIC_URL: Base URL used to build public asset URLs

Usage Example:
```python
from accredia.utils.s3_client import s3_client

url, error = s3_client.upload_file(
    file_obj=request.files['file'],
    key='cruzados/logos/4f1c....png',
    content_type='image/png'
)
```
"""

import logging
from typing import BinaryIO, Optional, Tuple
from flask import current_app

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class S3Client:
    """S3 client wrapper for asset storage operations."""

    def __init__(self):
        self._client = None
        self._bucket = None
        self._initialized = False

    def _ensure_initialized(self) -> Tuple[bool, Optional[str]]:
        """
        Ensure S3 client is initialized with configuration from the Flask app.

        Returns:
            Tuple of (success bool, error message)
        """
        if self._initialized:
            return True, None

        config = current_app.config
        self._bucket = config.get('S3_BUCKET_NAME', 'accredia-assets')

        try:
            boto_config = Config(
                region_name=config.get('S3_REGION', 'us-east-1'),
                signature_version=config.get('S3_SIGNATURE_VERSION', 's3v4'),
                retries={
                    'max_attempts': 3,
                    'mode': 'adaptive'
                },
                max_pool_connections=20
            )

            self._client = boto3.client(
                's3',
                endpoint_url=config.get('S3_ENDPOINT_URL'),
                aws_access_key_id=config.get('S3_ACCESS_KEY_ID'),
                aws_secret_access_key=config.get('S3_SECRET_ACCESS_KEY'),
                config=boto_config
            )
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize S3 client: {str(e)}", exc_info=True)
            return False, f'S3 initialization failed: {str(e)}'

        self._initialized = True
        logger.info(f"S3 client initialized: bucket={self._bucket}")
        return True, None

    def reset(self) -> None:
        """Forget the cached client (used when the app configuration changes)."""
        self._client = None
        self._bucket = None
        self._initialized = False

    def get_public_url(self, key: str) -> str:
        """
        Build the public URL of an object.

        Uses S3_PUBLIC_URL when configured (CDN or custom domain), else the
        virtual-hosted AWS URL.
        """
        config = current_app.config
        base = config.get('S3_PUBLIC_URL')
        if base:
            return f"{base.rstrip('/')}/{key}"
        bucket = config.get('S3_BUCKET_NAME', 'accredia-assets')
        region = config.get('S3_REGION', 'us-east-1')
        return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"

    def upload_file(
        self,
        file_obj: BinaryIO,
        key: str,
        content_type: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Upload a file object and return its public URL.

        Args:
            file_obj: File-like object (werkzeug FileStorage stream, BytesIO)
            key: Object key, e.g. 'cruzados/logos/<uuid>.png'
            content_type: MIME type stored with the object

        Returns:
            Tuple of (public URL, error message)
        """
        _, error = self._ensure_initialized()
        if error:
            return None, error

        try:
            file_obj.seek(0)
            extra_args = {'CacheControl': 'max-age=3600'}
            if content_type:
                extra_args['ContentType'] = content_type

            self._client.upload_fileobj(
                Fileobj=file_obj,
                Bucket=self._bucket,
                Key=key,
                ExtraArgs=extra_args
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading file to S3 (key: {key}): {str(e)}", exc_info=True)
            return None, f'S3 upload failed: {str(e)}'

        logger.info(f"File uploaded to S3: {key}")
        return self.get_public_url(key), None

    def delete_file(self, key: str) -> Tuple[bool, Optional[str]]:
        """
        Delete one object. Deleting a missing key succeeds.

        Returns:
            Tuple of (success bool, error message)
        """
        _, error = self._ensure_initialized()
        if error:
            return False, error

        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting file from S3 (key: {key}): {str(e)}", exc_info=True)
            return False, f'S3 delete failed: {str(e)}'

        logger.info(f"File deleted from S3: {key}")
        return True, None

    def delete_prefix(self, prefix: str) -> Tuple[int, Optional[str]]:
        """
        Delete every object under a prefix (e.g. 'cruzados/').

        Returns:
            Tuple of (deleted object count, error message)
        """
        _, error = self._ensure_initialized()
        if error:
            return 0, error

        deleted = 0
        try:
            paginator = self._client.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                objects = [{'Key': obj['Key']} for obj in page.get('Contents', [])]
                if not objects:
                    continue
                self._client.delete_objects(Bucket=self._bucket, Delete={'Objects': objects, 'Quiet': True})
                deleted += len(objects)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting S3 prefix {prefix}: {str(e)}", exc_info=True)
            return deleted, f'S3 delete failed: {str(e)}'

        logger.info(f"Deleted {deleted} objects under S3 prefix {prefix}")
        return deleted, None


# Global S3 client instance
s3_client = S3Client()
