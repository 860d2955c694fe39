"""
S3 object store.

boto3 is synchronous, so every call runs in a worker thread via
``asyncio.to_thread``. ``endpoint_url`` points the client at an
S3-compatible store (MinIO, LocalStack).
"""

from __future__ import annotations

import asyncio
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from complyhub.exceptions import StorageError

logger = logging.getLogger(__name__)


class S3ObjectStore:
    """ObjectStore backed by a single S3 bucket."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client=None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url
        self._client = client

    @property
    def bucket(self) -> str:
        return self._bucket

    def _build_client(self):
        kwargs: dict = {"service_name": "s3", "region_name": self._region}
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        return boto3.client(**kwargs)

    def _ensure_client(self):
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def put_object(self, key: str, body: bytes, content_type: str) -> None:
        client = self._ensure_client()
        try:
            await asyncio.to_thread(
                client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload object: {e}", key=key, operation="put") from e
        logger.debug("Uploaded s3://%s/%s (%d bytes)", self._bucket, key, len(body))

    async def get_object(self, key: str) -> bytes:
        client = self._ensure_client()
        try:
            response = await asyncio.to_thread(client.get_object, Bucket=self._bucket, Key=key)
            return await asyncio.to_thread(response["Body"].read)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to download object: {e}", key=key, operation="get") from e

    async def delete_object(self, key: str) -> None:
        client = self._ensure_client()
        try:
            await asyncio.to_thread(client.delete_object, Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete object: {e}", key=key, operation="delete") from e

    async def presigned_url(self, key: str, expires_in: int) -> str:
        client = self._ensure_client()
        try:
            return await asyncio.to_thread(
                client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to presign object: {e}", key=key, operation="presign") from e
