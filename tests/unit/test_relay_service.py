from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime

import pytest

from marketplace_chat.application.exceptions import (
    InvalidCredentialError,
    MissingCredentialError,
)
from marketplace_chat.domain.value_objects.enums import ConnectionState
from marketplace_chat.services.relay_service import SUPERSEDED_CLOSE_CODE
from tests.conftest import FakeChannel


def chat_frame(conversation_id, content="hi", receiver_id="u2", **overrides) -> str:
    event = {
        "type": "chat_message",
        "conversationId": str(conversation_id),
        "content": content,
        "receiverId": receiver_id,
    }
    event.update(overrides)
    return json.dumps({k: v for k, v in event.items() if v is not None})


@pytest.mark.asyncio
async def test_missing_token_closes_without_registering(make_relay, registry):
    relay = make_relay()

    with pytest.raises(MissingCredentialError) as exc_info:
        await relay.authenticate(None)

    assert exc_info.value.close_code == 4001
    assert exc_info.value.detail == "no credential"
    assert relay.state is ConnectionState.CLOSED
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_invalid_token_closes_with_distinct_reason(make_relay, registry):
    relay = make_relay()

    with pytest.raises(InvalidCredentialError) as exc_info:
        await relay.authenticate("forged")

    assert exc_info.value.close_code == 4003
    assert exc_info.value.detail == "invalid credential"
    assert relay.state is ConnectionState.CLOSED
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_authenticated_connection_is_registered(connect, registry):
    relay, channel = await connect("u1")

    assert relay.state is ConnectionState.ACTIVE
    assert relay.user_id == "u1"
    assert registry.lookup("u1") is channel


@pytest.mark.asyncio
async def test_chat_message_reaches_sender_and_receiver(connect, uow, conversation):
    sender, sender_ch = await connect("u1")
    _, receiver_ch = await connect("u2")

    await sender.handle(chat_frame(conversation.id, content="hi"))

    [ack] = sender_ch.of_type("message_sent")
    assert ack["message"]["content"] == "hi"
    assert ack["message"]["senderId"] == "u1"
    assert ack["message"]["sender"]["name"] == "Ana"
    [push] = receiver_ch.of_type("new_message")
    assert push["message"] == ack["message"]
    assert receiver_ch.of_type("message_sent") == []

    stored = uow.conversations._store[conversation.id]
    created_at = datetime.fromisoformat(ack["message"]["createdAt"].replace("Z", "+00:00"))
    assert stored.last_activity_at == created_at


@pytest.mark.asyncio
async def test_receiver_offline_message_kept_for_history(connect, uow, conversation):
    sender, sender_ch = await connect("u1")

    await sender.handle(chat_frame(conversation.id, content="are you there?"))

    assert len(sender_ch.of_type("message_sent")) == 1
    history = await uow.messages.list_messages(conversation.id)
    assert [m.content for m in history] == ["are you there?"]


@pytest.mark.asyncio
async def test_closed_receiver_channel_gets_nothing(connect, conversation):
    sender, sender_ch = await connect("u1")
    _, receiver_ch = await connect("u2")
    receiver_ch.is_open = False

    await sender.handle(chat_frame(conversation.id))

    assert receiver_ch.sent == []
    assert len(sender_ch.of_type("message_sent")) == 1


@pytest.mark.asyncio
async def test_failed_push_does_not_undo_persistence(connect, uow, registry, conversation):
    sender, sender_ch = await connect("u1")
    _, receiver_ch = await connect("u2")
    receiver_ch.fail_sends = True

    await sender.handle(chat_frame(conversation.id))

    assert len(sender_ch.of_type("message_sent")) == 1
    assert uow.messages.count(conversation.id) == 1
    assert registry.lookup("u2") is None


@pytest.mark.parametrize("missing", ["content", "conversationId", "receiverId"])
@pytest.mark.asyncio
async def test_missing_field_yields_error(connect, uow, conversation, missing):
    sender, sender_ch = await connect("u1")

    await sender.handle(chat_frame(conversation.id, **{missing: None}))

    [error] = sender_ch.sent
    assert error["type"] == "error"
    assert missing in error["message"]
    assert uow.messages.count(conversation.id) == 0


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"type": "typing", "conversationId": "x"}),
        json.dumps({"conversationId": "x", "content": "hi", "receiverId": "u2"}),
    ],
)
@pytest.mark.asyncio
async def test_malformed_frames_yield_error(connect, uow, conversation, raw):
    sender, sender_ch = await connect("u1")

    await sender.handle(raw)

    assert [p["type"] for p in sender_ch.sent] == ["error"]
    assert uow.messages.count(conversation.id) == 0


@pytest.mark.asyncio
async def test_invalid_conversation_id_yields_error(connect):
    sender, sender_ch = await connect("u1")

    await sender.handle(chat_frame("c1"))

    [error] = sender_ch.sent
    assert error["type"] == "error"
    assert "conversationId" in error["message"]


@pytest.mark.asyncio
async def test_unknown_conversation_yields_error(connect):
    sender, sender_ch = await connect("u1")

    await sender.handle(chat_frame(uuid.uuid4()))

    assert sender_ch.sent == [{"type": "error", "message": "Conversation not found"}]


@pytest.mark.asyncio
async def test_non_participant_cannot_send(connect, uow, conversation):
    outsider, outsider_ch = await connect("u3")
    _, receiver_ch = await connect("u2")

    await outsider.handle(chat_frame(conversation.id))

    assert [p["type"] for p in outsider_ch.sent] == ["error"]
    assert receiver_ch.sent == []
    assert uow.messages.count(conversation.id) == 0


@pytest.mark.asyncio
async def test_persistence_failure_yields_error_without_delivery(connect, uow, conversation):
    sender, sender_ch = await connect("u1")
    _, receiver_ch = await connect("u2")
    uow.messages_w.fail = True
    before = uow.conversations._store[conversation.id].last_activity_at

    await sender.handle(chat_frame(conversation.id))

    assert sender_ch.sent == [{"type": "error", "message": "Storage unavailable"}]
    assert receiver_ch.sent == []
    assert uow.conversations._store[conversation.id].last_activity_at == before


@pytest.mark.asyncio
async def test_unexpected_failure_keeps_connection_usable(connect, uow, conversation, monkeypatch):
    sender, sender_ch = await connect("u1")

    async def boom(*args, **kwargs):
        raise RuntimeError("driver exploded")

    monkeypatch.setattr(uow.conversations, "get_by_id", boom)
    await sender.handle(chat_frame(conversation.id))
    monkeypatch.undo()
    await sender.handle(chat_frame(conversation.id, content="again"))

    assert sender_ch.sent[0] == {"type": "error", "message": "Failed to process message"}
    assert sender_ch.sent[1]["type"] == "message_sent"
    assert sender.state is ConnectionState.ACTIVE


@pytest.mark.asyncio
async def test_messages_from_one_sender_keep_send_order(connect, uow, conversation):
    sender, sender_ch = await connect("u1")
    _, receiver_ch = await connect("u2")
    contents = [f"msg-{i}" for i in range(10)]

    for text in contents:
        await sender.handle(chat_frame(conversation.id, content=text))

    history = await uow.messages.list_messages(conversation.id)
    assert [m.content for m in history] == contents
    assert [p["message"]["content"] for p in receiver_ch.of_type("new_message")] == contents


@pytest.mark.asyncio
async def test_close_unregisters_and_stops_processing(connect, uow, registry, conversation):
    relay, channel = await connect("u1")

    relay.close()
    await relay.handle(chat_frame(conversation.id))

    assert relay.state is ConnectionState.CLOSED
    assert registry.lookup("u1") is None
    assert channel.sent == []
    assert uow.messages.count(conversation.id) == 0


@pytest.mark.asyncio
async def test_superseded_close_keeps_new_registration(connect, registry, conversation):
    old_relay, old_ch = await connect("u2")
    _, new_ch = await connect("u2")
    sender, _ = await connect("u1")

    old_relay.close()
    await sender.handle(chat_frame(conversation.id))

    assert registry.lookup("u2") is new_ch
    assert old_ch.closed_with is None
    assert old_ch.sent == []
    assert len(new_ch.of_type("new_message")) == 1


@pytest.mark.asyncio
async def test_superseded_channel_closed_when_configured(connect):
    _, old_ch = await connect("u2")
    await connect("u2", close_superseded=True)

    assert old_ch.closed_with == (SUPERSEDED_CLOSE_CODE, "superseded")


@pytest.mark.asyncio
async def test_activate_requires_authentication(make_relay):
    relay = make_relay(FakeChannel())

    with pytest.raises(RuntimeError):
        await relay.activate()


@pytest.mark.asyncio
async def test_cancelled_connection_still_stores_accepted_message(
    connect, uow, conversation, monkeypatch,
):
    sender, sender_ch = await connect("u1")
    started = asyncio.Event()
    release = asyncio.Event()
    create = uow.messages_w.create

    async def slow_create(message):
        started.set()
        await release.wait()
        return await create(message)

    monkeypatch.setattr(uow.messages_w, "create", slow_create)
    task = asyncio.create_task(sender.handle(chat_frame(conversation.id)))
    await started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    release.set()

    async def committed():
        while not uow._committed:
            await asyncio.sleep(0)

    await asyncio.wait_for(committed(), timeout=1)
    assert uow.messages.count(conversation.id) == 1
    assert sender_ch.sent == []
