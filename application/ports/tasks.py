"""Port for fire-and-forget work that must not delay the response."""
from __future__ import annotations

from typing import Any, Awaitable, Protocol


class TaskSpawner(Protocol):
    def spawn(self, coro: Awaitable[Any], *, name: str, failure_event: str = ..., **log_context: Any) -> Any: ...


__all__ = ["TaskSpawner"]
