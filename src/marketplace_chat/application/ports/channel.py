from __future__ import annotations

from typing import Any, Protocol


class LiveChannel(Protocol):
    """One open bidirectional connection to a client."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, payload: dict[str, Any]) -> None: ...

    async def close(self, code: int, reason: str) -> None: ...
