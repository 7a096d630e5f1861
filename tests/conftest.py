"""Shared test fixtures."""
from __future__ import annotations

import dataclasses
import itertools
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import InvalidCredentialError, PersistenceError
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import UserSummary
from marketplace_chat.domain.value_objects.ids import canonical_pair
from marketplace_chat.infrastructure.ws.notifier import Notifier
from marketplace_chat.infrastructure.ws.registry import ConnectionRegistry
from marketplace_chat.services.relay_service import RelayConnection

USERS = {
    "u1": UserSummary(id="u1", name="Ana", profile_pic="avatars/u1.png"),
    "u2": UserSummary(id="u2", name="Boris", profile_pic=None),
    "u3": UserSummary(id="u3", name="Chen", profile_pic=None),
}


@pytest.fixture
def u1() -> Principal:
    return Principal(user_id="u1")


@pytest.fixture
def u2() -> Principal:
    return Principal(user_id="u2")


@pytest.fixture
def u3() -> Principal:
    return Principal(user_id="u3")


def make_conversation(
    a: str = "u1",
    b: str = "u2",
    *,
    conversation_id: UUID | None = None,
    last_activity_at: datetime | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    user1_id, user2_id = canonical_pair(a, b)
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        user1_id=user1_id,
        user2_id=user2_id,
        created_at=now,
        last_activity_at=last_activity_at or now,
    )


def make_message(
    *,
    conversation_id: UUID | None = None,
    sender_id: str = "u1",
    receiver_id: str = "u2",
    content: str = "hello",
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id or uuid.uuid4(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        created_at=created_at or datetime.now(timezone.utc),
    )


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        mine = [c for c in self._store.values() if c.has_participant(user_id)]
        return sorted(mine, key=lambda c: c.last_activity_at, reverse=True)

    def _find_pair(self, user1_id: str, user2_id: str) -> Conversation | None:
        for c in self._store.values():
            if (c.user1_id, c.user2_id) == (user1_id, user2_id):
                return c
        return None


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader
    fail: bool = False

    async def get_or_create(
        self, user1_id: str, user2_id: str, now: datetime
    ) -> tuple[Conversation, bool]:
        if self.fail:
            raise PersistenceError("Storage unavailable")
        # check-and-insert without a suspension point, like a unique constraint
        existing = self._reader._find_pair(user1_id, user2_id)
        if existing is not None:
            return existing, False
        conv = Conversation(
            id=uuid.uuid4(),
            user1_id=user1_id,
            user2_id=user2_id,
            created_at=now,
            last_activity_at=now,
        )
        self._reader._store[conv.id] = conv
        return conv, True

    async def touch_last_activity(self, conversation_id: UUID, ts: datetime) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = dataclasses.replace(
            conv, last_activity_at=max(conv.last_activity_at, ts),
        )


@dataclass
class FakeUserReader:
    _users: dict[str, UserSummary] = field(default_factory=lambda: dict(USERS))

    async def get_by_id(self, user_id: str) -> UserSummary | None:
        return self._users.get(user_id)

    async def get_many(self, user_ids: list[str]) -> dict[str, UserSummary]:
        return {uid: self._users[uid] for uid in user_ids if uid in self._users}


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        return sorted(
            (m for m in self._messages if m.conversation_id == conversation_id),
            key=lambda m: (m.created_at, m.seq or 0),
        )

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]:
        latest: dict[UUID, Message] = {}
        for cid in conversation_ids:
            msgs = await self.list_messages(cid)
            if msgs:
                latest[cid] = msgs[-1]
        return latest

    def count(self, conversation_id: UUID) -> int:
        return sum(1 for m in self._messages if m.conversation_id == conversation_id)


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    _users: FakeUserReader
    fail: bool = False
    _seq: Any = field(default_factory=lambda: itertools.count(1))

    async def create(self, message: Message) -> Message:
        if self.fail:
            raise PersistenceError("Storage unavailable")
        stored = dataclasses.replace(
            message,
            seq=next(self._seq),
            sender=self._users._users.get(message.sender_id),
        )
        self._reader._messages.append(stored)
        return stored


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    users: FakeUserReader = field(default_factory=FakeUserReader)
    _committed: bool = False
    _rolled_back: bool = False

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages, self.users)

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations._store[conversation.id] = conversation
        return conversation

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        self._rolled_back = True

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            await self.rollback()


def uow_factory_for(uow: FakeUoW):
    @asynccontextmanager
    async def _factory() -> AsyncIterator[FakeUoW]:
        yield uow

    return _factory


@dataclass(eq=False)
class FakeChannel:
    """LiveChannel recording what was sent to it."""

    sent: list[dict[str, Any]] = field(default_factory=list)
    is_open: bool = True
    fail_sends: bool = False
    closed_with: tuple[int, str] | None = None

    async def send(self, payload: dict[str, Any]) -> None:
        if self.fail_sends:
            raise RuntimeError("socket gone")
        self.sent.append(payload)

    async def close(self, code: int, reason: str) -> None:
        self.closed_with = (code, reason)
        self.is_open = False

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [p for p in self.sent if p["type"] == event_type]


@dataclass
class FakeVerifier:
    """Accepts tokens of the form ``token-<user id>``."""

    async def verify(self, token: str) -> Principal:
        if not token.startswith("token-"):
            raise InvalidCredentialError()
        return Principal(user_id=token.removeprefix("token-"))


@dataclass
class FakePublisher:
    published: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        self.published.append((channel, payload))


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def conversation(uow: FakeUoW) -> Conversation:
    return uow.add_conversation(make_conversation("u1", "u2"))


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def notifier(registry: ConnectionRegistry) -> Notifier:
    return Notifier(registry)


@pytest.fixture
def make_relay(uow: FakeUoW, registry: ConnectionRegistry, notifier: Notifier):
    def _make(channel: FakeChannel | None = None, **kwargs: Any) -> RelayConnection:
        return RelayConnection(
            channel or FakeChannel(),
            verifier=FakeVerifier(),
            registry=registry,
            notifier=notifier,
            uow_factory=uow_factory_for(uow),
            **kwargs,
        )

    return _make


@pytest.fixture
def connect(make_relay):
    """Open, authenticate and activate a relay connection for ``user_id``."""

    async def _connect(user_id: str, **kwargs: Any) -> tuple[RelayConnection, FakeChannel]:
        channel = FakeChannel()
        relay = make_relay(channel, **kwargs)
        await relay.authenticate(f"token-{user_id}")
        await relay.activate()
        return relay, channel

    return _connect
