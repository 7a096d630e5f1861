from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from marketplace_chat.application.dto.conversation import ConversationSummaryDTO
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import NotFoundError, ValidationError
from marketplace_chat.application.policies.permissions import assert_conversation_access
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.value_objects.ids import canonical_pair

logger = logging.getLogger(__name__)


async def get_or_create_conversation(
    principal: Principal,
    other_user_id: str,
    uow: UnitOfWork,
) -> ConversationSummaryDTO:
    """Return the conversation between the caller and ``other_user_id``, creating it on first contact.

    Argument order does not matter: the pair is canonicalized before the
    store's atomic get-or-create.
    """
    if other_user_id == principal.user_id:
        raise ValidationError("Cannot start a conversation with yourself")

    async with uow:
        if await uow.users.get_by_id(other_user_id) is None:
            raise NotFoundError("User not found")

        user1_id, user2_id = canonical_pair(principal.user_id, other_user_id)
        conversation, created = await uow.conversations_w.get_or_create(
            user1_id, user2_id, datetime.now(timezone.utc),
        )
        if created:
            await uow.commit()
            logger.info(
                "Created conversation %s between %s and %s",
                conversation.id, user1_id, user2_id,
            )

        summaries = await _summarize([conversation], uow)
    return summaries[0]


async def list_user_conversations(
    principal: Principal,
    uow: UnitOfWork,
) -> list[ConversationSummaryDTO]:
    async with uow:
        conversations = await uow.conversations.list_for_user(principal.user_id)
        return await _summarize(conversations, uow)


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationSummaryDTO:
    async with uow:
        conversation = assert_conversation_access(
            principal, await uow.conversations.get_by_id(conversation_id),
        )
        summaries = await _summarize([conversation], uow)
    return summaries[0]


async def _summarize(
    conversations: list[Conversation],
    uow: UnitOfWork,
) -> list[ConversationSummaryDTO]:
    user_ids = [uid for c in conversations for uid in (c.user1_id, c.user2_id)]
    users = await uow.users.get_many(user_ids)
    latest = await uow.messages.latest_for_conversations([c.id for c in conversations])
    return [ConversationSummaryDTO.build(c, users, latest.get(c.id)) for c in conversations]
