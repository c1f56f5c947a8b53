"""S3 blob store: upload, move, paginated listing and batch delete under project namespaces."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings, get_settings
from app.core.exceptions import BlobStoreError
from app.services.blob_paths import PathCodec

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request.
MAX_DELETE_BATCH = 1000


def create_s3_client(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    kwargs = {
        "region_name": settings.s3_region,
        "aws_access_key_id": settings.aws_access_key_id or None,
        "aws_secret_access_key": settings.aws_secret_access_key or None,
        "config": Config(signature_version="s3v4"),
    }
    if settings.s3_endpoint_url:
        kwargs["endpoint_url"] = settings.s3_endpoint_url
    else:
        # Regional endpoint; the global one answers 307 for buckets outside us-east-1.
        kwargs["endpoint_url"] = f"https://s3.{settings.s3_region}.amazonaws.com"
    return boto3.client("s3", **kwargs)


@dataclass
class BlobPage:
    paths: list[str] = field(default_factory=list)
    next_token: Optional[str] = None


class S3BlobStore:
    """
    Async facade over a boto3 S3 client. Every call runs in a worker thread so
    the event loop is never blocked on network I/O.

    Raises BlobStoreError for any S3/botocore failure; callers decide whether
    that is fatal.
    """

    def __init__(self, client, bucket: str, codec: PathCodec):
        self.client = client
        self.bucket = bucket
        self.codec = codec

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "S3BlobStore":
        settings = settings or get_settings()
        return cls(
            create_s3_client(settings),
            settings.s3_bucket,
            PathCodec(settings.s3_public_base),
        )

    def public_url(self, path: str) -> str:
        return self.codec.public_url(path)

    async def _call(self, op: str, **params):
        method = getattr(self.client, op)
        try:
            return await asyncio.to_thread(method, **params)
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"S3 {op} failed: {e}") from e

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Upload (overwriting any existing object) and return the public URL."""
        await self._call(
            "put_object",
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )
        return self.public_url(path)

    async def move(self, src: str, dst: str) -> str:
        """S3 has no rename: copy then delete the source. Returns the new public URL."""
        await self._call(
            "copy_object",
            Bucket=self.bucket,
            Key=dst,
            CopySource={"Bucket": self.bucket, "Key": src},
        )
        try:
            await self._call("delete_object", Bucket=self.bucket, Key=src)
        except BlobStoreError as e:
            # The copy landed; a stale source is left for a later sweep.
            logger.warning("Moved %s -> %s but could not delete source: %s", src, dst, e)
        return self.public_url(dst)

    async def list_page(self, prefix: str, limit: int, token: Optional[str] = None) -> BlobPage:
        params = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": limit}
        if token:
            params["ContinuationToken"] = token
        resp = await self._call("list_objects_v2", **params)
        paths = [obj["Key"] for obj in resp.get("Contents", [])]
        next_token = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
        return BlobPage(paths=paths, next_token=next_token)

    async def delete_many(self, paths: list[str]) -> None:
        if not paths:
            return
        if len(paths) > MAX_DELETE_BATCH:
            raise ValueError(f"delete batch of {len(paths)} exceeds {MAX_DELETE_BATCH}")
        resp = await self._call(
            "delete_objects",
            Bucket=self.bucket,
            Delete={"Objects": [{"Key": p} for p in paths], "Quiet": True},
        )
        errors = resp.get("Errors") or []
        if errors:
            sample = ", ".join(f"{e.get('Key')}: {e.get('Code')}" for e in errors[:5])
            raise BlobStoreError(f"S3 delete_objects failed for {len(errors)} keys ({sample})")

    async def download(self, path: str) -> tuple[bytes, str]:
        """Object bytes and content type."""
        resp = await self._call("get_object", Bucket=self.bucket, Key=path)
        body = resp["Body"]
        try:
            data = await asyncio.to_thread(body.read)
        except (BotoCoreError, OSError) as e:
            raise BlobStoreError(f"S3 get_object read failed for {path}: {e}") from e
        finally:
            body.close()
        return data, resp.get("ContentType") or "application/octet-stream"
