from datetime import datetime
from enum import Enum

from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class AttendanceRecord(Document):
    """Final status of one student for one finalized live session."""
    class_id: Indexed(str)
    student_id: Indexed(str)
    status: AttendanceStatus
    # A class accumulates records over many sessions; these tie a record to its run.
    session_id: str
    session_started_at: datetime
    recorded_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "attendance_records"
        use_state_management = True
        # One record per student per session, so a retried finalize cannot double up.
        indexes = [
            IndexModel(
                [("session_id", ASCENDING), ("student_id", ASCENDING)],
                name="session_student_unique",
                unique=True,
            ),
        ]


class StartAttendanceRequest(BaseModel):
    classId: str = Field(min_length=1)
