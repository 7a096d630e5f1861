from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from marketplace_chat.api.v1.schemas.common import CamelModel, UserSummaryResponse
from marketplace_chat.domain.entities.message import MAX_CONTENT_LENGTH


class SendMessageRequest(CamelModel):
    conversation_id: UUID
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    receiver_id: str = Field(min_length=1)


class MessageResponse(CamelModel):
    """Persisted message record; same shape as the live-channel record."""

    id: UUID
    conversation_id: UUID
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    sender: UserSummaryResponse | None = None
