from fastapi import APIRouter

from rollcall.api.deps import TeacherOnly
from rollcall.api.responses import ok
from rollcall.models.user import User, UserRole

router = APIRouter()


@router.get("")
async def list_students(user: TeacherOnly):
    students = await User.find(User.role == UserRole.STUDENT).to_list()
    return ok([{"_id": str(s.id), "name": s.name, "email": s.email} for s in students])
