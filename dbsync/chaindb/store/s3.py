# mypy: ignore-errors
"""
S3 snapshot store.

Blobs are stored under their own content id, which makes an S3 bucket (or
MinIO) behave as a content-addressed store:

    s3://<bucket>/<blob_prefix>/<sha256:hex>

Invariants:
    - The object key is derived from the bytes, so re-uploading identical
      content overwrites an identical object
    - Objects are never deleted by the client
"""

from __future__ import annotations

import logging
from typing import Any

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import NotFoundError, TransientError
from .base import sha256_content_id

logger = logging.getLogger(__name__)


class S3SnapshotStore:
    """SnapshotStore backed by S3 via aiobotocore.

    The client is created lazily on first use and released by close().

    Attributes:
        config: SnapshotStoreConfig with bucket / region / endpoint settings
    """

    def __init__(self, config: Any) -> None:
        self.config = config
        self._s3_client = None
        self._s3_ctx = None
        self._session = None

    async def _init_s3_client(self) -> None:
        """Initialize S3 client."""
        self._session = get_session()

        client_kwargs = {
            "region_name": self.config.s3_region,
        }

        if self.config.s3_endpoint_url:
            client_kwargs["endpoint_url"] = self.config.s3_endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()

    async def _client(self):
        if self._s3_client is None:
            await self._init_s3_client()
        return self._s3_client

    def _key(self, content_id: str) -> str:
        return f"{self.config.s3_blob_prefix}/{content_id}"

    async def put(self, data: bytes) -> str:
        content_id = sha256_content_id(data)
        client = await self._client()
        try:
            await client.put_object(
                Bucket=self.config.s3_bucket,
                Key=self._key(content_id),
                Body=data,
                ContentType="application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise TransientError(f"S3 upload of {content_id} failed: {e}", collaborator="s3")

        logger.debug(
            "Uploaded blob",
            extra={"content_id": content_id, "size_bytes": len(data), "bucket": self.config.s3_bucket},
        )
        return content_id

    async def get(self, content_id: str) -> bytes:
        client = await self._client()
        try:
            response = await client.get_object(
                Bucket=self.config.s3_bucket,
                Key=self._key(content_id),
            )
            return await response["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise NotFoundError(f"Blob not found in S3: {content_id}", content_id=content_id)
            raise TransientError(f"S3 fetch of {content_id} failed: {e}", collaborator="s3")
        except BotoCoreError as e:
            raise TransientError(f"S3 fetch of {content_id} failed: {e}", collaborator="s3")

    async def close(self) -> None:
        """Close S3 client."""
        if self._s3_client:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_client = None
