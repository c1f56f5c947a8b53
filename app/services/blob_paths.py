"""Blob-store URL <-> storage path mapping. Pure string inspection, no I/O."""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import unquote, urlsplit


class PathCodec:
    """
    Recognises durable blob-store URLs by the public base they start with.

    A URL like ``https://bucket.s3.eu-west-1.amazonaws.com/<projectId>/<name>.png``
    has storage path ``<projectId>/<name>.png`` when that host is the bucket base.
    Scheme and host must match the base exactly (case-insensitive) and the path
    must sit under the base path; a base URL embedded in some other URL's query
    does not count.
    """

    def __init__(self, public_base: str):
        self.public_base = public_base.rstrip("/")
        self.marker = self.public_base + "/"
        base = urlsplit(self.public_base)
        self._scheme = base.scheme.lower()
        self._netloc = base.netloc.lower()
        self._base_path = base.path.rstrip("/") + "/"

    def extract_path(self, url: Any) -> Optional[str]:
        """Storage path of a blob-store URL, or None when ``url`` is not one (never raises)."""
        if not isinstance(url, str) or not url:
            return None
        try:
            parts = urlsplit(url)
        except ValueError:
            return None
        if parts.scheme.lower() != self._scheme or parts.netloc.lower() != self._netloc:
            return None
        if not parts.path.startswith(self._base_path):
            return None
        path = unquote(parts.path[len(self._base_path):]).lstrip("/")
        return path or None

    def is_blob_url(self, url: Any) -> bool:
        return self.extract_path(url) is not None

    @staticmethod
    def in_namespace(path: Optional[str], project_id: str) -> bool:
        if not path or not project_id:
            return False
        return path.startswith(f"{project_id}/")

    @staticmethod
    def namespace_prefix(project_id: str) -> str:
        return f"{project_id}/"

    def public_url(self, path: str) -> str:
        return f"{self.marker}{path.lstrip('/')}"
