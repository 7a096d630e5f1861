from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from marketplace_chat.domain.entities.user import UserSummary

MAX_CONTENT_LENGTH = 4000


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    seq: int | None = None  # assigned by the store on insert
    sender: UserSummary | None = None
