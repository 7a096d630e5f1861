from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from marketplace_chat.api.v1.schemas.common import CamelModel, UserSummaryResponse
from marketplace_chat.api.v1.schemas.message import MessageResponse


class CreateConversationRequest(CamelModel):
    other_user_id: str = Field(min_length=1)


class ConversationResponse(CamelModel):
    id: UUID
    user1_id: str
    user2_id: str
    user1: UserSummaryResponse | None = None
    user2: UserSummaryResponse | None = None
    created_at: datetime
    last_activity_at: datetime
    last_message: MessageResponse | None = None
