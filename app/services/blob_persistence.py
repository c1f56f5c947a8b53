"""Make every media reference in a document durable and namespaced under its project."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote_to_bytes, urlsplit
from urllib.request import url2pathname

from app.core.exceptions import BlobStoreError, TransientMediaError
from app.core.media import map_media, media_values
from app.services.blob_paths import PathCodec

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def is_network_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _decode_data_uri(uri: str) -> tuple[bytes, str]:
    header, sep, payload = uri[len("data:"):].partition(",")
    if not sep:
        raise TransientMediaError("data URI has no payload separator")
    params = header.split(";")
    content_type = params[0] or DEFAULT_CONTENT_TYPE
    try:
        if "base64" in params[1:]:
            data = base64.b64decode(payload, validate=True)
        else:
            data = unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as e:
        raise TransientMediaError(f"bad data URI payload: {e}") from e
    return data, content_type


class BlobPersistence:
    """
    persist(project_id, url) never raises for I/O problems: a failed upload or
    relocation is logged and the original value is returned, so the field stays
    non-durable until the next successful sync.

    Local file references are only read from inside ``media_root``; without a
    media root they are treated as unreadable.
    """

    def __init__(self, store, codec: Optional[PathCodec] = None, media_root: Optional[str] = None):
        self.store = store
        self.codec = codec or store.codec
        self.media_root = Path(media_root).resolve() if media_root else None

    async def persist(self, project_id: str, url: Any) -> Any:
        if not url or not isinstance(url, str):
            return url
        path = self.codec.extract_path(url)
        if path is not None:
            if self.codec.in_namespace(path, project_id):
                return url
            return await self._relocate(project_id, path, url)
        if is_network_url(url):
            return url
        return await self._upload_transient(project_id, url)

    async def persist_all(self, project_id: str, document: Any) -> Any:
        """New document with every known media field made durable. Identical values are persisted once."""
        return await self._map_all(document, lambda ref: self.persist(project_id, ref))

    async def inline(self, project_id: str, url: Any) -> Any:
        """Data URI for a blob in the project's namespace; anything else is returned as is."""
        path = self.codec.extract_path(url)
        if not self.codec.in_namespace(path, project_id):
            return url
        try:
            data, content_type = await self.store.download(path)
        except BlobStoreError as e:
            logger.warning("Could not inline %s for project %s: %s", path, project_id, e)
            return url
        return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"

    async def inline_all(self, project_id: str, document: Any) -> Any:
        return await self._map_all(document, lambda ref: self.inline(project_id, ref))

    async def _map_all(self, document: Any, resolve) -> Any:
        refs = media_values(document)
        if not refs:
            return map_media(document, lambda s: s)
        results = await asyncio.gather(*(resolve(ref) for ref in refs))
        resolved = dict(zip(refs, results))
        return map_media(document, lambda s: resolved.get(s, s))

    async def _relocate(self, project_id: str, path: str, url: str) -> str:
        name = path.rsplit("/", 1)[-1]
        dst = f"{project_id}/{name}"
        try:
            new_url = await self.store.move(path, dst)
        except BlobStoreError as e:
            logger.warning("Could not relocate %s into project %s: %s", path, project_id, e)
            return url
        logger.info("Relocated legacy blob %s -> %s", path, dst)
        return new_url

    async def _upload_transient(self, project_id: str, ref: str) -> str:
        try:
            data, content_type = await self._read_transient(ref)
            ext = mimetypes.guess_extension(content_type) or ""
            filename = f"{uuid.uuid4().hex}{ext}"
            url = await self.store.upload(f"{project_id}/{filename}", data, content_type)
        except (TransientMediaError, BlobStoreError) as e:
            logger.warning("Could not persist media for project %s (%s...): %s", project_id, ref[:48], e)
            return ref
        logger.debug("Uploaded %d bytes (%s) for project %s", len(data), content_type, project_id)
        return url

    async def _read_transient(self, ref: str) -> tuple[bytes, str]:
        if ref.startswith("data:"):
            return _decode_data_uri(ref)
        local = self._local_path(ref)
        try:
            data = await asyncio.to_thread(local.read_bytes)
        except (OSError, ValueError) as e:
            raise TransientMediaError(f"cannot read {local}: {e}") from e
        content_type = mimetypes.guess_type(local.name)[0] or DEFAULT_CONTENT_TYPE
        return data, content_type

    def _local_path(self, ref: str) -> Path:
        if self.media_root is None:
            raise TransientMediaError("no media root configured for local media")
        try:
            parts = urlsplit(ref)
            if parts.scheme == "file":
                raw = url2pathname(parts.path)
            elif parts.scheme and len(parts.scheme) > 1:
                raise TransientMediaError(f"unsupported media scheme {parts.scheme!r}")
            else:
                raw = ref
            candidate = Path(raw)
            if not candidate.is_absolute():
                candidate = self.media_root / candidate
            candidate = candidate.resolve()
        except (ValueError, OSError) as e:
            raise TransientMediaError(f"unusable local media reference: {e}") from e
        if not candidate.is_relative_to(self.media_root):
            raise TransientMediaError("local media outside media root")
        return candidate
