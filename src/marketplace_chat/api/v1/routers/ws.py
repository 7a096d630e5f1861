from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from marketplace_chat.api.deps import (
    NotifierDep,
    RegistryDep,
    UoWFactoryDep,
    VerifierDep,
)
from marketplace_chat.api.middleware.correlation_id import (
    HEADER,
    correlation_id_ctx,
    resolve_correlation_id,
)
from marketplace_chat.application.exceptions import AuthenticationError
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.ws.channel import WebSocketChannel
from marketplace_chat.services.relay_service import RelayConnection

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    verifier: VerifierDep,
    registry: RegistryDep,
    notifier: NotifierDep,
    uow_factory: UoWFactoryDep,
    token: str | None = Query(None),
) -> None:
    correlation_id_ctx.set(resolve_correlation_id(websocket.headers.get(HEADER)))
    # accept first so the close reason reaches the client
    await websocket.accept()
    connection = RelayConnection(
        WebSocketChannel(websocket),
        verifier=verifier,
        registry=registry,
        notifier=notifier,
        uow_factory=uow_factory,
        close_superseded=settings.WS_CLOSE_SUPERSEDED,
    )

    try:
        await connection.authenticate(token)
    except AuthenticationError as exc:
        logger.info("WS handshake rejected: %s", exc.detail)
        await websocket.close(code=exc.close_code, reason=exc.detail)
        return

    await connection.activate()
    try:
        while True:
            raw = await _receive_frame(websocket)
            await connection.handle(raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", connection.user_id)
    finally:
        connection.close()


async def _receive_frame(ws: WebSocket) -> str:
    message = await ws.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")
