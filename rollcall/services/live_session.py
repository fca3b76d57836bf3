"""Live roll call state.

A process holds at most one active :class:`LiveSession`. The
:class:`SessionManager` owns that slot and serializes every mutation behind an
``asyncio.Lock`` so a mark can never land in the middle of a finalize.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from rollcall.models.attendance import AttendanceStatus
from rollcall.services.store import AttendanceStore, FinalRecord

logger = logging.getLogger(__name__)

ACTIVE = "active"
NO_ACTIVE_SESSION = "no active session"


class SessionError(Exception):
    message = "Attendance session error"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class NoActiveSession(SessionError):
    message = "No active attendance session"


class SessionAlreadyActive(SessionError):
    message = "Attendance session already active"


class PersistenceFailed(SessionError):
    message = "Failed to persist attendance, session kept open"


@dataclass(frozen=True)
class Summary:
    present: int
    absent: int
    total: int

    @classmethod
    def of(cls, statuses: Iterable[AttendanceStatus]) -> "Summary":
        statuses = list(statuses)
        present = sum(1 for s in statuses if s == AttendanceStatus.PRESENT)
        absent = sum(1 for s in statuses if s == AttendanceStatus.ABSENT)
        return cls(present=present, absent=absent, total=len(statuses))

    def as_dict(self) -> dict[str, int]:
        return {"present": self.present, "absent": self.absent, "total": self.total}


@dataclass
class LiveSession:
    class_id: str
    started_at: datetime
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attendance: dict[str, AttendanceStatus] = field(default_factory=dict)

    def mark(self, student_id: str, status: AttendanceStatus) -> None:
        self.attendance[student_id] = status

    def summarize(self) -> Summary:
        # Unmarked students are not counted until finalize defaults them.
        return Summary.of(self.attendance.values())

    def finalize(self, enrolled_student_ids: Iterable[str]) -> dict[str, AttendanceStatus]:
        """Final outcome: current marks plus ``absent`` for every unmarked enrolled student.

        The session itself is left untouched so a failed write loses nothing.
        """
        outcome = dict(self.attendance)
        for student_id in enrolled_student_ids:
            outcome.setdefault(student_id, AttendanceStatus.ABSENT)
        return outcome


class SessionManager:
    def __init__(self):
        self._session: LiveSession | None = None
        self._lock = asyncio.Lock()

    @property
    def status(self) -> str:
        return ACTIVE if self._session is not None else NO_ACTIVE_SESSION

    @property
    def current(self) -> LiveSession | None:
        return self._session

    def _require(self) -> LiveSession:
        if self._session is None:
            raise NoActiveSession()
        return self._session

    async def start(self, class_id: str) -> LiveSession:
        async with self._lock:
            if self._session is not None:
                raise SessionAlreadyActive()
            self._session = LiveSession(class_id=class_id, started_at=datetime.now(timezone.utc))
            logger.info(f"Attendance session {self._session.session_id} started for class {class_id}")
            return self._session

    async def mark(self, student_id: str, status: AttendanceStatus) -> None:
        async with self._lock:
            session = self._require()
            session.mark(student_id, status)
            logger.debug(f"Session {session.session_id}: marked {student_id} {status.value}")

    async def summarize(self) -> Summary:
        async with self._lock:
            return self._require().summarize()

    async def status_of(self, student_id: str) -> AttendanceStatus | None:
        async with self._lock:
            return self._require().attendance.get(student_id)

    async def finalize(self, store: AttendanceStore) -> Summary:
        """Default unmarked students to absent, persist the outcome and clear the slot.

        The roster lookup is best-effort: if it fails only the marked students
        are written. A failed write raises :class:`PersistenceFailed` and keeps
        the session active.
        """
        async with self._lock:
            session = self._require()
            try:
                roster = await store.enrolled_students(session.class_id)
            except Exception as e:
                logger.warning(f"Roster lookup failed for class {session.class_id}, using marked students only: {e}")
                roster = set()

            outcome = session.finalize(roster)
            records = [
                FinalRecord(
                    class_id=session.class_id,
                    student_id=student_id,
                    status=status,
                    session_id=session.session_id,
                    session_started_at=session.started_at,
                )
                for student_id, status in outcome.items()
            ]
            try:
                await store.save_records(records)
            except Exception as e:
                logger.error(f"Persisting attendance session {session.session_id} failed: {e}")
                raise PersistenceFailed() from e

            self._session = None
            logger.info(f"Attendance session {session.session_id} finalized with {len(records)} records")
            return Summary.of(outcome.values())
