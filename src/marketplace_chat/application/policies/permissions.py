from __future__ import annotations

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import AuthorizationError, NotFoundError
from marketplace_chat.domain.entities.conversation import Conversation


def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not one of its two users."""
    if conversation is None:
        raise NotFoundError("Conversation not found")

    if not conversation.has_participant(principal.user_id):
        raise AuthorizationError("Not a participant of this conversation")

    return conversation
