"""Durable side of a live session: class lookups and attendance writes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo.errors import BulkWriteError

from rollcall.models.attendance import AttendanceRecord, AttendanceStatus
from rollcall.models.school_class import ClassRoom

logger = logging.getLogger(__name__)

DUPLICATE_KEY = 11000


@dataclass(frozen=True)
class FinalRecord:
    class_id: str
    student_id: str
    status: AttendanceStatus
    session_id: str
    session_started_at: datetime


class AttendanceStore(Protocol):
    async def class_exists(self, class_id: str) -> bool: ...

    async def class_owner(self, class_id: str) -> str | None: ...

    async def enrolled_students(self, class_id: str) -> set[str]: ...

    async def is_enrolled(self, class_id: str, user_id: str) -> bool: ...

    async def save_records(self, records: list[FinalRecord]) -> None: ...


def parse_object_id(value: str) -> PydanticObjectId | None:
    """Object id for `value`, or None when it is not a valid id."""
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


async def get_class(class_id: str) -> ClassRoom | None:
    oid = parse_object_id(class_id)
    if oid is None:
        return None
    return await ClassRoom.get(oid)


class MongoAttendanceStore:
    """AttendanceStore backed by the Beanie documents."""

    async def class_exists(self, class_id: str) -> bool:
        return await get_class(class_id) is not None

    async def class_owner(self, class_id: str) -> str | None:
        classroom = await get_class(class_id)
        return classroom.teacher_id if classroom else None

    async def enrolled_students(self, class_id: str) -> set[str]:
        classroom = await get_class(class_id)
        if not classroom:
            logger.warning(f"Class {class_id} not found while loading roster")
            return set()
        return set(classroom.student_ids)

    async def is_enrolled(self, class_id: str, user_id: str) -> bool:
        return user_id in await self.enrolled_students(class_id)

    async def save_records(self, records: list[FinalRecord]) -> None:
        """Insert one record per student; records already written for the session are skipped.

        A finalize retried after a partial write hits the unique
        ``(session_id, student_id)`` index for the rows that made it the first
        time. Those duplicates count as written, anything else is re-raised.
        """
        if not records:
            return
        try:
            await AttendanceRecord.insert_many(
                [
                    AttendanceRecord(
                        class_id=r.class_id,
                        student_id=r.student_id,
                        status=r.status,
                        session_id=r.session_id,
                        session_started_at=r.session_started_at,
                    )
                    for r in records
                ],
                ordered=False,
            )
        except BulkWriteError as e:
            errors = e.details.get("writeErrors", [])
            if not errors or any(err.get("code") != DUPLICATE_KEY for err in errors):
                raise
            logger.info(f"Skipped {len(errors)} attendance records already written for session {records[0].session_id}")
        logger.info(f"Persisted {len(records)} attendance records for class {records[0].class_id}")
