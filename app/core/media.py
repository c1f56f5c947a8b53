"""Known media keys: document fields that hold blob URLs.

Producers may add any field to a shot's metadata bag; only the keys listed
here are treated as media references by blob persistence. Bump
MEDIA_KEYS_VERSION when the set changes.
"""

from __future__ import annotations

from typing import Any, Callable

from app.core.casing import camel_to_snake
from app.core.tree import walk

MEDIA_KEYS_VERSION = 1

_SINGLE = ("generatedImage", "sketchImage", "referenceImage", "url", "imageUrl")
_LISTS = ("generationCandidates", "referencePhotos")

# Both conventions: documents arrive camelCase, stored metadata is snake_case.
MEDIA_FIELDS = frozenset(_SINGLE) | frozenset(camel_to_snake(k) for k in _SINGLE)
MEDIA_LIST_FIELDS = frozenset(_LISTS) | frozenset(camel_to_snake(k) for k in _LISTS)


def map_media(value: Any, fn: Callable[[str], str]) -> Any:
    """Return a copy of ``value`` with ``fn`` applied to every media reference string."""

    def field(key: Any, v: Any, descend):
        if key in MEDIA_FIELDS and isinstance(v, str):
            return fn(v)
        if key in MEDIA_LIST_FIELDS and isinstance(v, (list, tuple)):
            return [fn(item) if isinstance(item, str) else descend(item) for item in v]
        return descend(v)

    return walk(value, field=field)


def media_values(value: Any) -> list[str]:
    """Distinct non-empty media reference strings in ``value``, first-seen order."""
    seen: dict[str, None] = {}

    def remember(s: str) -> str:
        if s:
            seen.setdefault(s, None)
        return s

    map_media(value, remember)
    return list(seen)
