"""WebSocket event models."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from marketplace_chat.application.exceptions import ValidationError
from marketplace_chat.domain.entities.message import MAX_CONTENT_LENGTH, Message
from marketplace_chat.domain.value_objects.enums import InboundEventType, OutboundEventType


class ChatMessageEvent(BaseModel):
    """Client → Server."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["chat_message"]
    conversation_id: UUID = Field(alias="conversationId")
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    receiver_id: str = Field(alias="receiverId", min_length=1)


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, from_attributes=True)


class SenderRecord(_Record):
    id: str
    name: str
    profile_pic: str | None = None


class MessageRecord(_Record):
    """Message as pushed to live channels."""

    id: UUID
    conversation_id: UUID
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    sender: SenderRecord | None = None


class WsOutbound(BaseModel):
    """Server → Client."""

    type: OutboundEventType
    message: dict[str, Any] | str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def parse_inbound(raw: str) -> ChatMessageEvent:
    """Decode one client frame; raise ValidationError describing what is wrong."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Malformed payload: not valid JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Malformed payload: expected a JSON object")

    event_type = data.get("type")
    if event_type != InboundEventType.CHAT_MESSAGE:
        raise ValidationError(f"Unknown event type: {event_type!r}")

    try:
        return ChatMessageEvent.model_validate(data)
    except PydanticValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise ValidationError(
            f"Missing or invalid field(s): {', '.join(fields)}"
        ) from exc


def message_event(event_type: OutboundEventType, message: Message) -> WsOutbound:
    record = MessageRecord.model_validate(message, from_attributes=True)
    return WsOutbound(type=event_type, message=record.model_dump(mode="json", by_alias=True))


def error_event(reason: str) -> WsOutbound:
    return WsOutbound(type=OutboundEventType.ERROR, message=reason)
