"""Blob storage for user avatars."""

import asyncio
import re
import threading
from abc import ABC, abstractmethod
from uuid import UUID, uuid4

from structlog import get_logger

from recipebox.config import settings

logger = get_logger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

_s3_client = None
_s3_client_lock = threading.Lock()


def build_object_key(folder: str, owner_id: UUID | str, filename: str) -> str:
    """Key for an upload: ``<folder>/<owner_id>/<unique prefix>-<filename>``."""
    safe_name = re.sub(r"\s+", "-", filename.strip()) or "upload"
    safe_name = safe_name.rsplit("/", 1)[-1] or "upload"
    unique_name = f"{uuid4().hex}-{safe_name}"
    folder = folder.strip("/")
    owned = f"{owner_id}/{unique_name}"
    return f"{folder}/{owned}" if folder else owned


def key_belongs_to(key: str, owner_id: UUID | str) -> bool:
    """True if ``key`` was built for ``owner_id`` by :func:`build_object_key`."""
    parts = key.split("/")
    return len(parts) >= 2 and parts[-2] == str(owner_id)


class BlobStore(ABC):
    """Minimal object storage interface."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the object stored under ``key``."""

    @abstractmethod
    def head_check(self, key: str) -> bool:
        """Return True if an object exists under ``key``."""

    @abstractmethod
    def key_from_url(self, url: str) -> str | None:
        """Return the object key for a URL hosted by this store, None otherwise."""


def _get_s3_client():
    """Return a cached boto3 S3 client (thread-safe lazy init)."""
    global _s3_client
    if _s3_client is not None:
        return _s3_client
    with _s3_client_lock:
        if _s3_client is not None:
            return _s3_client
        import boto3

        _s3_client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_access_key,
        )
        return _s3_client


class S3BlobStore(BlobStore):
    """Public-read S3 bucket."""

    def __init__(self, bucket: str, base_url: str):
        self.bucket = bucket
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._client = _get_s3_client()

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            ACL="public-read",
        )
        logger.info("blob_stored", bucket=self.bucket, key=key, size=len(data))
        return f"{self.base_url}{key}"

    def delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("blob_deleted", bucket=self.bucket, key=key)

    def head_check(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            http_status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if error_code in ("404", "NoSuchKey", "NotFound") or http_status == 404:
                return False
            raise

    def key_from_url(self, url: str) -> str | None:
        if not url or not url.startswith(self.base_url):
            return None
        key = url[len(self.base_url) :]
        return key or None


def get_blob_store() -> BlobStore:
    """Build the configured avatar store."""
    return S3BlobStore(bucket=settings.s3_bucket_name, base_url=settings.s3_base_url)


async def check_storage_connection() -> bool:
    """
    Check that the avatar bucket is reachable.

    Returns:
        True if the bucket answers, False otherwise
    """
    try:
        client = _get_s3_client()
        await asyncio.to_thread(client.head_bucket, Bucket=settings.s3_bucket_name)
        return True
    except Exception:
        return False
