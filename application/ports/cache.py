"""Cache port used by services that keep a short-lived read-through copy."""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class ProfileCache(Protocol):
    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool: ...

    async def delete(self, *keys: str) -> int: ...


__all__ = ["ProfileCache"]
