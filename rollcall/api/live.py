"""WebSocket endpoint for running a live roll call."""
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, status
from jose import JWTError

from rollcall.api.deps import decode_access_token
from rollcall.services.connections import Connection
from rollcall.services.protocol import SessionProtocol, error_message

logger = logging.getLogger(__name__)

router = APIRouter()

HANDSHAKE_REJECTED = "Unauthorized or invalid token"


@router.websocket("/ws")
async def live_attendance(websocket: WebSocket, token: Optional[str] = Query(None)):
    await websocket.accept()
    try:
        principal = decode_access_token(token or "")
    except (JWTError, ValueError):
        logger.info("Rejected realtime handshake with missing or invalid token")
        await websocket.send_json(error_message(HANDSHAKE_REJECTED))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    state = websocket.app.state
    connection = Connection(user_id=principal.user_id, role=principal.role, websocket=websocket)
    protocol = SessionProtocol(state.sessions, state.connections, state.store)
    state.connections.register(connection)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            await protocol.handle(connection, raw)
    finally:
        state.connections.unregister(connection)
