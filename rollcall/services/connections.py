"""Registry of authenticated realtime connections."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from fastapi import WebSocket

from rollcall.models.user import UserRole

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """One open socket bound to the identity it authenticated with."""
    user_id: str
    role: UserRole
    websocket: WebSocket


class ConnectionRegistry:
    def __init__(self):
        self._connections: set[Connection] = set()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: Connection) -> bool:
        return connection in self._connections

    def register(self, connection: Connection) -> None:
        self._connections.add(connection)
        logger.info(f"Realtime connection opened for {connection.role.value} {connection.user_id}")

    def unregister(self, connection: Connection) -> None:
        if connection in self._connections:
            self._connections.discard(connection)
            logger.info(f"Realtime connection closed for {connection.role.value} {connection.user_id}")

    async def broadcast(self, message: dict) -> None:
        payload = json.dumps(message)
        for connection in list(self._connections):
            await self._deliver(connection, payload)

    async def unicast(self, connection: Connection, message: dict) -> None:
        await self._deliver(connection, json.dumps(message))

    async def _deliver(self, connection: Connection, payload: str) -> None:
        try:
            await connection.websocket.send_text(payload)
        except Exception as e:
            logger.warning(f"Dropping message for {connection.user_id}: {e}")
