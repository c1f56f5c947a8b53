"""In-memory stand-ins for the S3 blob store, plus document builders."""

import base64
from collections import defaultdict
from typing import Optional

from app.core.exceptions import BlobStoreError
from app.services.blob_paths import PathCodec
from app.services.storage_service import BlobPage

PUBLIC_BASE = "https://blobs.test/storage/v1/object/public/images"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


class FakeBlobStore:
    """Same async surface as S3BlobStore, backed by a dict. Failures are opt-in per operation."""

    def __init__(self, public_base: str = PUBLIC_BASE):
        self.codec = PathCodec(public_base)
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.calls: dict[str, int] = defaultdict(int)
        self.delete_batches: list[list[str]] = []
        self.fail_ops: set[str] = set()
        self.fail_delete_calls: set[int] = set()  # 0-based delete_many call numbers that fail

    def public_url(self, path: str) -> str:
        return self.codec.public_url(path)

    def put(self, path: str, data: bytes = b"x", content_type: str = "image/png") -> str:
        self.objects[path] = (data, content_type)
        return self.public_url(path)

    def _maybe_fail(self, op: str) -> None:
        self.calls[op] += 1
        if op in self.fail_ops:
            raise BlobStoreError(f"{op} failed (injected)")

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self._maybe_fail("upload")
        return self.put(path, data, content_type)

    async def move(self, src: str, dst: str) -> str:
        self._maybe_fail("move")
        if src not in self.objects:
            raise BlobStoreError(f"no such key {src}")
        self.objects[dst] = self.objects.pop(src)
        return self.public_url(dst)

    async def download(self, path: str) -> tuple[bytes, str]:
        self._maybe_fail("download")
        if path not in self.objects:
            raise BlobStoreError(f"no such key {path}")
        return self.objects[path]

    async def list_page(self, prefix: str, limit: int, token: Optional[str] = None) -> BlobPage:
        self._maybe_fail("list")
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        start = int(token or 0)
        page = keys[start:start + limit]
        more = start + limit < len(keys)
        return BlobPage(paths=page, next_token=str(start + limit) if more else None)

    async def delete_many(self, paths: list[str]) -> None:
        call_no = self.calls["delete"]
        self.calls["delete"] += 1
        self.delete_batches.append(list(paths))
        if "delete" in self.fail_ops or call_no in self.fail_delete_calls:
            raise BlobStoreError("delete failed (injected)")
        for p in paths:
            self.objects.pop(p, None)


def make_document(project_id="p1", shots=None, scenes=None, **extra):
    document = {
        "id": project_id,
        "name": "Night Shift",
        "settings": {"era": "1980s", "aspectRatio": "2.39:1", "customEras": ["Neon Noir"]},
        "scriptElements": [{"id": "el1", "type": "scene_heading", "content": "INT. DINER - NIGHT"}],
        "scenes": scenes if scenes is not None else [
            {"id": "s1", "sequence": 1, "heading": "INT. DINER - NIGHT", "actionNotes": "Rain on glass."},
        ],
        "shots": shots if shots is not None else [],
    }
    document.update(extra)
    return document
