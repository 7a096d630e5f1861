from __future__ import annotations

from enum import StrEnum


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


class InboundEventType(StrEnum):
    CHAT_MESSAGE = "chat_message"


class OutboundEventType(StrEnum):
    MESSAGE_SENT = "message_sent"
    NEW_MESSAGE = "new_message"
    ERROR = "error"
