"""In-process registry of live connections."""
from __future__ import annotations

import logging
import threading

from marketplace_chat.application.ports.channel import LiveChannel

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps each user id to at most one live channel.

    A newer registration replaces the older entry. Removal is conditional on
    the channel identity, so a late close from a superseded connection cannot
    evict its replacement.
    """

    def __init__(self) -> None:
        self._channels: dict[str, LiveChannel] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, channel: LiveChannel) -> LiveChannel | None:
        """Store ``channel`` for ``user_id``; return the channel it replaced, if any."""
        with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel
            total = len(self._channels)
        logger.debug("Registered %s (total=%d)", user_id, total)
        return previous if previous is not channel else None

    def lookup(self, user_id: str) -> LiveChannel | None:
        with self._lock:
            return self._channels.get(user_id)

    def unregister(self, user_id: str, channel: LiveChannel) -> bool:
        with self._lock:
            if self._channels.get(user_id) is not channel:
                return False
            del self._channels[user_id]
        logger.debug("Unregistered %s", user_id)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)
