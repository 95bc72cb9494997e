"""
S3 content storage for uploaded images.

Setup:
  1. Create a bucket with public-read objects (or a CDN in front of it)
  2. Set env vars:
     - STORAGE_BACKEND=s3
     - AWS_S3_BUCKET=puretome-uploads
     - AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY / AWS_REGION
"""

from __future__ import annotations

import asyncio
import logging

import boto3
from botocore.exceptions import ClientError

from puretome.config import Settings
from puretome.storage.base import ContentStorage

logger = logging.getLogger(__name__)


class S3ContentStorage(ContentStorage):
    """Store uploads in an S3 bucket."""

    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.aws_s3_bucket
        self.region = settings.aws_region
        self._settings = settings
        self._client = client

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self._settings.aws_region,
                aws_access_key_id=self._settings.aws_access_key_id or None,
                aws_secret_access_key=self._settings.aws_secret_access_key or None,
            )
        return self._client

    @property
    def base_url(self) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return f"{self.base_url}/{key}"

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise FileNotFoundError(f"Content not found: {key}") from e
        return response["Body"].read()

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            logger.error(f"Failed to delete s3://{self.bucket}/{key}: {e}")
            return False
        return True

    def key_for_url(self, url: str) -> str | None:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):]
