from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from marketplace_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        """Conversations the user takes part in, latest activity first."""
        ...


class ConversationWriter(Protocol):
    async def get_or_create(
        self, user1_id: str, user2_id: str, now: datetime
    ) -> tuple[Conversation, bool]:
        """Atomically fetch or insert the conversation for a canonical pair.

        Returns (conversation, created).
        """
        ...

    async def touch_last_activity(
        self, conversation_id: UUID, ts: datetime
    ) -> None: ...
