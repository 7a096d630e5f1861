from __future__ import annotations

from typing import Protocol
from uuid import UUID

from marketplace_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        """All messages of a conversation, oldest first."""
        ...

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]: ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message:
        """Insert and return the stored record, sender details included."""
        ...
