"""Blob paths currently referenced by a document."""

from __future__ import annotations

from typing import Any

from app.core.tree import iter_strings
from app.services.blob_paths import PathCodec


def collect_reachable(codec: PathCodec, project_id: str, document: Any) -> set[str]:
    """
    Every storage path under ``project_id`` that some string in ``document`` points at.

    Scans all string leaves, not only the known media keys, so a reference moved
    into an unrecognised field still keeps its blob alive. Recomputed on every call.
    """
    reachable: set[str] = set()
    for value in iter_strings(document):
        path = codec.extract_path(value)
        if codec.in_namespace(path, project_id):
            reachable.add(path)
    return reachable
