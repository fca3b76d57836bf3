"""Realtime roll call protocol.

Inbound messages are ``{"event": <name>, "data": {...}}`` envelopes. Teacher
events are broadcast to every observer; the student status request is answered
to the requester only.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Awaitable, Callable, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rollcall.models.attendance import AttendanceStatus
from rollcall.models.user import UserRole
from rollcall.services.connections import Connection, ConnectionRegistry
from rollcall.services.live_session import SessionError, SessionManager
from rollcall.services.store import AttendanceStore

logger = logging.getLogger(__name__)

ERROR_EVENT = "ERROR"
INVALID_FORMAT = "Invalid message format"
UNKNOWN_EVENT = "Unknown event"
NOT_YET_UPDATED = "not yet updated"


class EventType(str, Enum):
    ATTENDANCE_MARKED = "ATTENDANCE_MARKED"
    TODAY_SUMMARY = "TODAY_SUMMARY"
    MY_ATTENDANCE = "MY_ATTENDANCE"
    DONE = "DONE"


class MarkPayload(BaseModel):
    studentId: str = Field(min_length=1)
    status: AttendanceStatus


class EmptyPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")


EVENT_PAYLOADS: dict[EventType, type[BaseModel]] = {
    EventType.ATTENDANCE_MARKED: MarkPayload,
    EventType.TODAY_SUMMARY: EmptyPayload,
    EventType.MY_ATTENDANCE: EmptyPayload,
    EventType.DONE: EmptyPayload,
}

REQUIRED_ROLE: dict[EventType, UserRole] = {
    EventType.ATTENDANCE_MARKED: UserRole.TEACHER,
    EventType.TODAY_SUMMARY: UserRole.TEACHER,
    EventType.MY_ATTENDANCE: UserRole.STUDENT,
    EventType.DONE: UserRole.TEACHER,
}


class Envelope(NamedTuple):
    type: EventType
    data: object


class ProtocolError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def parse_envelope(raw: str) -> Envelope:
    """Event name and raw payload; the payload is validated after the role gate."""
    try:
        message = json.loads(raw)
    except ValueError:
        raise ProtocolError(INVALID_FORMAT)
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        raise ProtocolError(INVALID_FORMAT)

    try:
        event_type = EventType(message["event"])
    except ValueError:
        raise ProtocolError(UNKNOWN_EVENT)
    return Envelope(event_type, message.get("data"))


def validate_payload(event_type: EventType, data: object) -> BaseModel:
    try:
        return EVENT_PAYLOADS[event_type].model_validate(data if data is not None else {})
    except ValidationError:
        raise ProtocolError(INVALID_FORMAT)


def error_message(message: str) -> dict:
    return {"event": ERROR_EVENT, "data": {"message": message}}


Handler = Callable[[Connection, BaseModel], Awaitable[None]]


class SessionProtocol:
    """Applies inbound events to the live session and fans out the results."""

    def __init__(self, sessions: SessionManager, connections: ConnectionRegistry, store: AttendanceStore):
        self.sessions = sessions
        self.connections = connections
        self.store = store
        self._handlers: dict[EventType, Handler] = {
            EventType.ATTENDANCE_MARKED: self._on_attendance_marked,
            EventType.TODAY_SUMMARY: self._on_today_summary,
            EventType.MY_ATTENDANCE: self._on_my_attendance,
            EventType.DONE: self._on_done,
        }
        missing = set(EventType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for events: {sorted(e.value for e in missing)}")

    async def handle(self, connection: Connection, raw: str) -> None:
        try:
            envelope = parse_envelope(raw)
            required = REQUIRED_ROLE[envelope.type]
            if connection.role != required:
                raise ProtocolError(f"Forbidden, {required.value} event only")
            payload = validate_payload(envelope.type, envelope.data)
            await self._handlers[envelope.type](connection, payload)
        except ProtocolError as e:
            await self.send_error(connection, e.message)
        except SessionError as e:
            await self.send_error(connection, e.message)

    async def send_error(self, connection: Connection, message: str) -> None:
        await self.connections.unicast(connection, error_message(message))

    async def _on_attendance_marked(self, connection: Connection, payload: MarkPayload) -> None:
        await self.sessions.mark(payload.studentId, payload.status)
        await self.connections.broadcast(
            {
                "event": EventType.ATTENDANCE_MARKED.value,
                "data": {"studentId": payload.studentId, "status": payload.status.value},
            }
        )

    async def _on_today_summary(self, connection: Connection, payload: EmptyPayload) -> None:
        summary = await self.sessions.summarize()
        await self.connections.broadcast({"event": EventType.TODAY_SUMMARY.value, "data": summary.as_dict()})

    async def _on_my_attendance(self, connection: Connection, payload: EmptyPayload) -> None:
        status = await self.sessions.status_of(connection.user_id)
        await self.connections.unicast(
            connection,
            {
                "event": EventType.MY_ATTENDANCE.value,
                "data": {"status": status.value if status else NOT_YET_UPDATED},
            },
        )

    async def _on_done(self, connection: Connection, payload: EmptyPayload) -> None:
        summary = await self.sessions.finalize(self.store)
        await self.connections.broadcast(
            {
                "event": EventType.DONE.value,
                "data": {"message": "Attendance persisted", **summary.as_dict()},
            }
        )
