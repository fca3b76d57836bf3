from datetime import datetime

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class ClassRoom(Document):
    """A class owned by one teacher with an enrolled student roster."""
    class_name: str
    teacher_id: Indexed(str)
    student_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "classes"
        use_state_management = True


class ClassCreate(BaseModel):
    className: str = Field(min_length=1)


class AddStudentRequest(BaseModel):
    studentId: str = Field(min_length=1)


def class_to_dict(classroom: ClassRoom) -> dict:
    return {
        "_id": str(classroom.id),
        "className": classroom.class_name,
        "teacherId": classroom.teacher_id,
        "studentIds": list(classroom.student_ids),
    }
