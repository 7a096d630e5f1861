from __future__ import annotations

import asyncio
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState


class WebSocketChannel:
    """LiveChannel over a Starlette WebSocket.

    Sends are serialized: the owner's acks and other connections' pushes
    share the socket.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        self._send_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send(self, payload: dict[str, Any]) -> None:
        async with self._send_lock:
            await self._ws.send_json(payload)

    async def close(self, code: int, reason: str) -> None:
        async with self._send_lock:
            if self.is_open:
                await self._ws.close(code=code, reason=reason)

    def __repr__(self) -> str:
        client = self._ws.client
        return f"WebSocketChannel({client.host}:{client.port})" if client else "WebSocketChannel()"
