"""Per-connection chat relay.

A ``RelayConnection`` owns one live channel for its whole life:

    CONNECTING --token ok--> AUTHENTICATED --registered--> ACTIVE --close--> CLOSED
    CONNECTING --no/invalid token--> CLOSED

While ACTIVE each inbound ``chat_message`` is persisted, pushed to the
receiver's live channel when there is one, and acknowledged to the sender.
Every failure stays inside the connection and becomes an ``error`` event.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable

from marketplace_chat.application.dto.message import SendMessageDTO
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidCredentialError,
    MissingCredentialError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from marketplace_chat.application.ports.auth import TokenVerifier
from marketplace_chat.application.ports.channel import LiveChannel
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.enums import ConnectionState, OutboundEventType
from marketplace_chat.infrastructure.ws.notifier import Notifier
from marketplace_chat.infrastructure.ws.protocol import (
    WsOutbound,
    error_event,
    message_event,
    parse_inbound,
)
from marketplace_chat.infrastructure.ws.registry import ConnectionRegistry
from marketplace_chat.services import message_service

logger = logging.getLogger(__name__)

UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]

SUPERSEDED_CLOSE_CODE = 4000
GENERIC_FAILURE = "Failed to process message"


class RelayConnection:
    def __init__(
        self,
        channel: LiveChannel,
        *,
        verifier: TokenVerifier,
        registry: ConnectionRegistry,
        notifier: Notifier,
        uow_factory: UoWFactory,
        close_superseded: bool = False,
    ) -> None:
        self._channel = channel
        self._verifier = verifier
        self._registry = registry
        self._notifier = notifier
        self._uow_factory = uow_factory
        self._close_superseded = close_superseded
        self.state = ConnectionState.CONNECTING
        self.principal: Principal | None = None

    @property
    def user_id(self) -> str | None:
        return self.principal.user_id if self.principal else None

    async def authenticate(self, token: str | None) -> Principal:
        """Verify the handshake credential; on failure the connection is CLOSED."""
        if self.state is not ConnectionState.CONNECTING:
            raise RuntimeError(f"Cannot authenticate a {self.state} connection")
        try:
            if not token:
                raise MissingCredentialError()
            principal = await self._verifier.verify(token)
        except AuthenticationError:
            self.state = ConnectionState.CLOSED
            raise
        except Exception as exc:
            self.state = ConnectionState.CLOSED
            logger.warning("Credential verification errored", exc_info=True)
            raise InvalidCredentialError() from exc

        self.principal = principal
        self.state = ConnectionState.AUTHENTICATED
        return principal

    async def activate(self) -> None:
        """Register the channel so other connections can reach this user."""
        if self.state is not ConnectionState.AUTHENTICATED or self.principal is None:
            raise RuntimeError(f"Cannot activate a {self.state} connection")

        previous = self._registry.register(self.principal.user_id, self._channel)
        self.state = ConnectionState.ACTIVE
        logger.info("User %s connected", self.principal.user_id)

        if previous is None:
            return
        logger.info("User %s reconnected, superseding %r", self.principal.user_id, previous)
        if self._close_superseded:
            try:
                await previous.close(SUPERSEDED_CLOSE_CODE, "superseded")
            except Exception:
                logger.debug("Closing superseded channel failed", exc_info=True)

    async def handle(self, raw: str) -> None:
        """Process one inbound frame. Never raises for per-event failures."""
        if self.state is not ConnectionState.ACTIVE or self.principal is None:
            logger.debug("Dropping frame on %s connection", self.state)
            return

        try:
            event = parse_inbound(raw)
        except ValidationError as exc:
            await self._reply(error_event(exc.detail))
            return

        data = SendMessageDTO(
            conversation_id=event.conversation_id,
            receiver_id=event.receiver_id,
            content=event.content,
        )
        try:
            # an accepted event is stored even if this task is cancelled meanwhile
            message = await asyncio.shield(self._persist(self.principal, data))
        except (AuthorizationError, NotFoundError, ValidationError, PersistenceError) as exc:
            logger.info("Rejected chat_message from %s: %s", self.principal.user_id, exc.detail)
            await self._reply(error_event(exc.detail))
            return
        except Exception:
            logger.exception("Failed to process chat_message from %s", self.principal.user_id)
            await self._reply(error_event(GENERIC_FAILURE))
            return

        await self._notifier.push(
            message.receiver_id, message_event(OutboundEventType.NEW_MESSAGE, message),
        )
        await self._reply(message_event(OutboundEventType.MESSAGE_SENT, message))

    def close(self) -> None:
        """Leave the registry (only if still the registered channel) and stop processing."""
        if self.state is ConnectionState.CLOSED:
            return
        was_active = self.state is ConnectionState.ACTIVE
        self.state = ConnectionState.CLOSED
        if was_active and self.principal is not None:
            self._registry.unregister(self.principal.user_id, self._channel)
            logger.info("User %s disconnected", self.principal.user_id)

    async def _persist(self, principal: Principal, data: SendMessageDTO) -> Message:
        async with self._uow_factory() as uow:
            return await message_service.send_message(principal, data, uow)

    async def _reply(self, event: WsOutbound) -> None:
        if not self._channel.is_open:
            return
        try:
            await self._channel.send(event.to_payload())
        except Exception:
            logger.debug("Reply to %s failed", self.user_id, exc_info=True)
