"""Redis Pub/Sub fan-out for pushes whose receiver is connected to another process.

Delivery is at-most-once: an event published while no process holds the
receiver's channel is simply lost, and the receiver reads it from history.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from marketplace_chat.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]

_POLL_TIMEOUT = 1.0
_MAX_BACKOFF = 30.0


class RedisPubSubPublisher:
    """EventPublisher over ``PUBLISH``."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        raw = serialize_event(str(payload.get("event_type", "unknown")), payload)
        receivers = await self._redis.publish(channel, raw)
        logger.debug("Published to %s (%d subscribers)", channel, receivers)


class RedisPubSubSubscriber:
    """Listens on the fan-out channel and hands each event to ``callback``.

    Reconnects with exponential backoff when Redis goes away; ``stop`` lets the
    current poll finish instead of cancelling mid-delivery.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name="relay-fanout-subscriber")
        logger.info("Fan-out subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=_POLL_TIMEOUT * 3)
        except asyncio.TimeoutError:
            self._task.cancel()
        self._task = None
        logger.info("Fan-out subscriber stopped")

    async def _run(self) -> None:
        backoff = 0.5
        while not self._stopping.is_set():
            try:
                await self._consume()
                backoff = 0.5
            except RedisError as exc:
                logger.warning(
                    "Fan-out subscription lost (%s), retrying in %.1fs", exc, backoff,
                )
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=backoff)
                except asyncio.TimeoutError:
                    pass
                backoff = min(backoff * 2, _MAX_BACKOFF)

    async def _consume(self) -> None:
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self._channel)
        try:
            while not self._stopping.is_set():
                message = await pubsub.get_message(timeout=_POLL_TIMEOUT)
                if message is None or message["type"] != "message":
                    continue
                await self._dispatch(message["data"])
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
        except ValueError:
            logger.warning("Dropping malformed fan-out message")
            return
        try:
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error delivering fan-out event %s", event_type)
