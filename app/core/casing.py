"""snake_case (storage) <-> camelCase (application) key conversion for nested documents."""

from __future__ import annotations

import re
from typing import Any

from app.core.tree import walk

_SNAKE_BOUNDARY = re.compile(r"_([a-z])")
_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


def snake_to_camel(key: str) -> str:
    return _SNAKE_BOUNDARY.sub(lambda m: m.group(1).upper(), key)


def camel_to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda m: "_" + m.group(1).lower(), key)


def to_app_case(value: Any) -> Any:
    """Storage rows/JSON -> application document (every key, every depth)."""
    return walk(value, key=snake_to_camel)


def to_wire_case(value: Any) -> Any:
    """Application document -> storage rows/JSON (every key, every depth)."""
    return walk(value, key=camel_to_snake)
