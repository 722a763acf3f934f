"""WebSocket endpoint — one authenticated connection per user.

Frames in both directions are JSON objects ``{"event": ..., "data": ...}``.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from supportdesk.adapters.auth.jwt_tokens import decode_session_token
from supportdesk.application.events import OutboundEvent
from supportdesk.application.services.connection_registry import Connection
from supportdesk.domain.errors import AuthenticationError
from supportdesk.domain.value_objects.identity import Identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

AUTH_FAILED_CLOSE_CODE = 4401


class Envelope(BaseModel):
    event: str
    data: dict = Field(default_factory=dict)


class WebSocketConnection(Connection):
    def __init__(self, identity: Identity, websocket: WebSocket):
        super().__init__(identity)
        self._ws = websocket
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, payload: dict) -> None:
        async with self._send_lock:
            await self._ws.send_json({"event": event, "data": payload})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = None):
    services = websocket.app.state.services
    await websocket.accept()
    try:
        identity = decode_session_token(token)
    except AuthenticationError as e:
        logger.info("Rejected WebSocket connection: %s", e.message)
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason=e.message)
        return

    connection = WebSocketConnection(identity, websocket)
    dispatcher = services.dispatcher
    await dispatcher.connect(connection)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                envelope = Envelope.model_validate_json(raw)
            except PydanticValidationError:
                await connection.send(
                    OutboundEvent.ERROR.value,
                    {"message": "Frames must be JSON objects with an 'event' field", "code": "validation"},
                )
                continue
            await dispatcher.dispatch(identity, envelope.event, envelope.data)
    except WebSocketDisconnect:
        pass
    finally:
        await dispatcher.disconnect(identity, connection)
