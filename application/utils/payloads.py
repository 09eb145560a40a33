"""Helpers for reading loosely-shaped provider payloads."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional


def dig(obj: Any, path: tuple[str, ...]) -> Any:
    """Follow ``path`` through nested dicts; ``None`` as soon as a hop is missing."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def first_string(obj: Any, paths: Iterable[tuple[str, ...]]) -> Optional[str]:
    """First non-empty string found along ``paths``, tried in order."""
    for path in paths:
        value = dig(obj, path)
        if isinstance(value, str) and value:
            return value
    return None


def utc_now_z() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
