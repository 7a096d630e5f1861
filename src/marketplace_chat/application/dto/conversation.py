from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import UserSummary


@dataclass(frozen=True, slots=True)
class ConversationSummaryDTO:
    """Conversation with participants' display fields and its latest message."""

    id: UUID
    user1_id: str
    user2_id: str
    created_at: datetime
    last_activity_at: datetime
    user1: UserSummary | None = None
    user2: UserSummary | None = None
    last_message: Message | None = None

    @classmethod
    def build(
        cls,
        conversation: Conversation,
        users: dict[str, UserSummary],
        last_message: Message | None,
    ) -> ConversationSummaryDTO:
        return cls(
            id=conversation.id,
            user1_id=conversation.user1_id,
            user2_id=conversation.user2_id,
            created_at=conversation.created_at,
            last_activity_at=conversation.last_activity_at,
            user1=users.get(conversation.user1_id),
            user2=users.get(conversation.user2_id),
            last_message=last_message,
        )
