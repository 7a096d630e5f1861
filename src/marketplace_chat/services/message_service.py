from __future__ import annotations

import uuid
from datetime import datetime, timezone

from marketplace_chat.application.dto.message import SendMessageDTO
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import ValidationError
from marketplace_chat.application.policies.permissions import assert_conversation_access
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.message import Message


async def send_message(
    principal: Principal,
    data: SendMessageDTO,
    uow: UnitOfWork,
) -> Message:
    """Persist a message and advance the conversation's last activity.

    Both writes commit together: on any failure neither is visible.
    """
    if not data.content.strip():
        raise ValidationError("Message content is empty")

    async with uow:
        conversation = assert_conversation_access(
            principal, await uow.conversations.get_by_id(data.conversation_id),
        )

        if data.receiver_id != conversation.other_participant(principal.user_id):
            raise ValidationError("Receiver is not the other participant of this conversation")

        msg = Message(
            id=uuid.uuid4(),
            conversation_id=data.conversation_id,
            sender_id=principal.user_id,
            receiver_id=data.receiver_id,
            content=data.content,
            created_at=datetime.now(timezone.utc),
        )
        msg = await uow.messages_w.create(msg)
        await uow.conversations_w.touch_last_activity(data.conversation_id, msg.created_at)
        await uow.commit()

    return msg


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Message]:
    async with uow:
        conversation = await uow.conversations.get_by_id(conversation_id)
        assert_conversation_access(principal, conversation)
        return await uow.messages.list_messages(conversation_id)
