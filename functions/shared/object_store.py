"""S3-backed object store used for submission assets."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from shared.constants import (
    ASSET_BUCKET_NAME,
    ASSET_PUBLIC_BASE_URL,
    AWS_REGION,
    S3_CONNECT_TIMEOUT,
    S3_ENDPOINT_URL,
    S3_MAX_ATTEMPTS,
    S3_READ_TIMEOUT,
)
from shared.error_handling import ObjectNotFound, StoreUnavailable

logger = logging.getLogger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def build_s3_client() -> Any:
    """Create an S3 client with bounded timeouts and standard retries."""
    config = Config(
        region_name=AWS_REGION,
        signature_version="s3v4",
        connect_timeout=S3_CONNECT_TIMEOUT,
        read_timeout=S3_READ_TIMEOUT,
        retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
    )
    return boto3.client("s3", config=config, endpoint_url=S3_ENDPOINT_URL or None)


class ObjectStore:
    """put/get/delete against one bucket, with typed failures."""

    def __init__(
        self,
        client: Any,
        bucket: str = ASSET_BUCKET_NAME,
        region: str = AWS_REGION,
        public_base_url: str = ASSET_PUBLIC_BASE_URL,
    ) -> None:
        self._client = client
        self.bucket = bucket
        self.region = region
        self.public_base_url = (
            public_base_url.rstrip("/")
            if public_base_url
            else f"https://{bucket}.s3.{region}.amazonaws.com"
        )

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(key)}"

    def key_from_url(self, url: str) -> str:
        if url.startswith(self.public_base_url + "/"):
            return unquote(url[len(self.public_base_url) + 1 :])
        return unquote(urlparse(url).path.lstrip("/"))

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Put failed for s3://%s/%s: %s", self.bucket, key, exc)
            raise StoreUnavailable(f"Unable to store object '{key}'") from exc
        logger.info("Stored s3://%s/%s (%d bytes)", self.bucket, key, len(data))
        return self.url_for(key)

    def get(self, key: str) -> Any:
        """Return the object's streaming body."""
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response["Error"]["Code"] in _MISSING_CODES:
                raise ObjectNotFound(f"Object '{key}' not found") from exc
            raise StoreUnavailable(f"Unable to read object '{key}'") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"Unable to read object '{key}'") from exc
        return response["Body"]

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response["Error"]["Code"] in _MISSING_CODES:
                return False
            raise StoreUnavailable(f"Unable to inspect object '{key}'") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"Unable to inspect object '{key}'") from exc
        return True

    def delete(self, key: str) -> bool:
        """Delete one object. Returns False if it was already gone."""
        existed = self.exists(key)
        if not existed:
            logger.info("Object already absent: s3://%s/%s", self.bucket, key)
            return False
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response["Error"]["Code"] in _MISSING_CODES:
                return False
            raise StoreUnavailable(f"Unable to delete object '{key}'") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"Unable to delete object '{key}'") from exc
        logger.info("Deleted s3://%s/%s", self.bucket, key)
        return True

    def discard(self, key: str) -> None:
        """Delete one object without checking for it first; absent keys are a no-op."""
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"Unable to delete object '{key}'") from exc
        logger.info("Discarded s3://%s/%s", self.bucket, key)

    def close(self) -> None:
        self._client.close()
