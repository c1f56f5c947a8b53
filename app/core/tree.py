"""Generic traversal over nested JSON-like values (mappings, sequences, scalars).

Case conversion, reachability scanning and blob persistence all walk project
documents through :func:`walk`, so they agree on what a nested document is.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional

KeyRule = Callable[[str], str]
LeafRule = Callable[[Any], Any]
Descend = Callable[[Any], Any]
FieldRule = Callable[[str, Any, Descend], Any]


def walk(
    value: Any,
    key: Optional[KeyRule] = None,
    field: Optional[FieldRule] = None,
    leaf: Optional[LeafRule] = None,
) -> Any:
    """
    Rebuild ``value`` bottom-up and return the new value; the input is never mutated.

    key:   rewrites every mapping key (non-string keys are left alone).
    field: called as ``field(original_key, value, descend)`` for every mapping entry;
           returns the new value for that entry. ``descend`` continues the walk
           into the entry with the same rules.
    leaf:  maps every scalar (anything that is not a mapping, list or tuple).
    """

    def descend(node: Any) -> Any:
        if isinstance(node, Mapping):
            out = {}
            for k, v in node.items():
                new_key = key(k) if key is not None and isinstance(k, str) else k
                out[new_key] = field(k, v, descend) if field is not None else descend(v)
            return out
        if isinstance(node, (list, tuple)):
            return [descend(item) for item in node]
        return leaf(node) if leaf is not None else node

    return descend(value)


def iter_strings(value: Any) -> list[str]:
    """Every string leaf in ``value``, in traversal order."""
    found: list[str] = []

    def collect(node: Any) -> Any:
        if isinstance(node, str):
            found.append(node)
        return node

    walk(value, leaf=collect)
    return found
