"""
Query string serialization for the CMS REST filtering convention.

Nested mappings flatten to bracketed key paths and lists to index brackets:

    {"filters": {"user": {"id": {"$eq": 3}}}, "tags": ["x", "y"]}
    -> "filters[user][id][$eq]=3&tags[0]=x&tags[1]=y"
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Union
from urllib.parse import quote_plus

Primitive = Union[str, int, float, bool]
QueryValue = Union[Primitive, list, Mapping[str, Any], None]

_KEY_SAFE = "[]$*"
_VALUE_SAFE = "*"


def _stringify(value: Primitive) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def flatten(config: Mapping[str, QueryValue]) -> list[tuple[str, str]]:
    """Return the (key, value) pairs of a query configuration in insertion order."""
    pairs: list[tuple[str, str]] = []
    active: set[int] = set()

    def _walk(key: str, value: QueryValue) -> None:
        if value is None:
            return
        if isinstance(value, (Mapping, list, tuple)):
            marker = id(value)
            if marker in active:
                raise ValueError(f"Circular reference in query configuration at {key!r}")
            active.add(marker)
            try:
                if isinstance(value, Mapping):
                    for child_key, child_value in value.items():
                        _walk(f"{key}[{child_key}]", child_value)
                else:
                    for index, item in enumerate(value):
                        _walk(f"{key}[{index}]", item)
            finally:
                active.discard(marker)
            return
        pairs.append((key, _stringify(value)))

    for key, value in config.items():
        _walk(str(key), value)
    return pairs


def serialize(config: Mapping[str, QueryValue] | None) -> str:
    """Serialize a query configuration to a query string without the leading '?'."""
    if not config:
        return ""
    return "&".join(
        f"{quote_plus(key, safe=_KEY_SAFE)}={quote_plus(value, safe=_VALUE_SAFE)}" for key, value in flatten(config)
    )
