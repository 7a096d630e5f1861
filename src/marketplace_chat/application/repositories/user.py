from __future__ import annotations

from typing import Protocol

from marketplace_chat.domain.entities.user import UserSummary


class UserReader(Protocol):
    async def get_by_id(self, user_id: str) -> UserSummary | None: ...

    async def get_many(self, user_ids: list[str]) -> dict[str, UserSummary]: ...
