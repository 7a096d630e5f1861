"""Best-effort push of relay events to receivers' live channels."""
from __future__ import annotations

import logging
from typing import Any

from marketplace_chat.application.ports.bus import EventPublisher
from marketplace_chat.infrastructure.ws.protocol import WsOutbound
from marketplace_chat.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Notifier:
    """Delivers to the locally registered channel, else optionally fans out.

    Never raises: an unreachable receiver reads the message from history later.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        publisher: EventPublisher | None = None,
        fanout_channel: str = "chat.relay",
    ) -> None:
        self._registry = registry
        self._publisher = publisher
        self._fanout_channel = fanout_channel

    async def push(self, user_id: str, event: WsOutbound) -> bool:
        """Return True when the event reached a channel in this process."""
        payload = event.to_payload()
        if await self.deliver_local(user_id, payload):
            return True
        if self._publisher is not None:
            try:
                await self._publisher.publish(
                    self._fanout_channel,
                    {"event_type": event.type, "receiver_id": user_id, "payload": payload},
                )
            except Exception:
                logger.warning("Fan-out publish for %s failed", user_id, exc_info=True)
        return False

    async def deliver_local(self, user_id: str, payload: dict[str, Any]) -> bool:
        channel = self._registry.lookup(user_id)
        if channel is None or not channel.is_open:
            return False
        try:
            await channel.send(payload)
        except Exception:
            logger.warning("Push to %s failed, dropping channel", user_id, exc_info=True)
            self._registry.unregister(user_id, channel)
            return False
        return True

    async def on_fanout_event(self, event_type: str, data: dict[str, Any]) -> None:
        """Pub/Sub callback: hand a remote push to a receiver connected here."""
        user_id = data.get("receiver_id")
        payload = data.get("payload")
        if not user_id or not isinstance(payload, dict):
            logger.debug("Ignoring fan-out event %s without receiver", event_type)
            return
        await self.deliver_local(user_id, payload)
