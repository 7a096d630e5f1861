from __future__ import annotations

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import UserSummary
from marketplace_chat.infrastructure.db.mappers import user as user_mapper
from marketplace_chat.infrastructure.db.models.message import MessageModel
from marketplace_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: MessageModel, sender: UserModel | None = None) -> Message:
    summary: UserSummary | None = user_mapper.model_to_entity(sender) if sender else None
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        content=model.content,
        created_at=model.created_at,
        seq=model.seq,
        sender=summary,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        conversation_id=entity.conversation_id,
        sender_id=entity.sender_id,
        receiver_id=entity.receiver_id,
        content=entity.content,
        created_at=entity.created_at,
    )
