from __future__ import annotations

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        user1_id=model.user1_id,
        user2_id=model.user2_id,
        created_at=model.created_at,
        last_activity_at=model.last_activity_at,
    )
