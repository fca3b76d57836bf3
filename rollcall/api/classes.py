"""Class CRUD - creation, roster enrollment, per-student history."""
from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from rollcall.api.deps import CurrentUser, Store, TeacherOnly
from rollcall.api.responses import ok
from rollcall.models.attendance import AttendanceRecord
from rollcall.models.school_class import AddStudentRequest, ClassCreate, ClassRoom, class_to_dict
from rollcall.models.user import User, UserRole
from rollcall.services.report import build_attendance_frame, render_csv, render_excel
from rollcall.services.store import get_class, parse_object_id

router = APIRouter()

NOT_CLASS_TEACHER = "Forbidden, not class teacher"


async def _get_class_or_404(class_id: str) -> ClassRoom:
    classroom = await get_class(class_id)
    if not classroom:
        raise HTTPException(status_code=404, detail="Class not found")
    return classroom


async def _get_owned_class(class_id: str, teacher_id: str) -> ClassRoom:
    classroom = await _get_class_or_404(class_id)
    if classroom.teacher_id != teacher_id:
        raise HTTPException(status_code=403, detail=NOT_CLASS_TEACHER)
    return classroom


@router.post("", status_code=201)
async def create_class(data: ClassCreate, user: TeacherOnly):
    classroom = ClassRoom(class_name=data.className, teacher_id=user.user_id)
    await classroom.insert()
    return ok(class_to_dict(classroom))


@router.post("/{class_id}/add-student")
async def add_student(class_id: str, data: AddStudentRequest, user: TeacherOnly):
    classroom = await _get_owned_class(class_id, user.user_id)

    oid = parse_object_id(data.studentId)
    student = await User.get(oid) if oid else None
    if not student or student.role != UserRole.STUDENT:
        raise HTTPException(status_code=404, detail="Student not found")

    student_id = str(student.id)
    # Enrolling twice is a no-op
    if student_id not in classroom.student_ids:
        classroom.student_ids.append(student_id)
        await classroom.save()

    return ok(class_to_dict(classroom))


@router.get("/{class_id}")
async def get_class_detail(class_id: str, user: CurrentUser):
    classroom = await _get_class_or_404(class_id)
    if classroom.teacher_id != user.user_id and user.user_id not in classroom.student_ids:
        raise HTTPException(status_code=403, detail=NOT_CLASS_TEACHER)

    oids = [oid for oid in (parse_object_id(s) for s in classroom.student_ids) if oid]
    found = {str(s.id): s for s in await User.find({"_id": {"$in": oids}}).to_list()}
    students = []
    for student_id in classroom.student_ids:
        s = found.get(student_id)
        if s:
            students.append({"_id": student_id, "name": s.name, "email": s.email})
        else:
            students.append({"_id": student_id})

    return ok(
        {
            "_id": str(classroom.id),
            "className": classroom.class_name,
            "teacherId": classroom.teacher_id,
            "students": students,
        }
    )


@router.get("/{class_id}/my-attendance")
async def my_attendance(class_id: str, user: CurrentUser, store: Store):
    """Latest finalized status for the caller. The live session is not consulted."""
    if not await store.class_exists(class_id):
        raise HTTPException(status_code=404, detail="Class not found")
    if not await store.is_enrolled(class_id, user.user_id):
        raise HTTPException(status_code=403, detail="Forbidden, not enrolled in class")

    record = (
        await AttendanceRecord.find(
            AttendanceRecord.class_id == class_id,
            AttendanceRecord.student_id == user.user_id,
        )
        .sort(-AttendanceRecord.recorded_at)
        .first_or_none()
    )
    return ok({"classId": class_id, "status": record.status.value if record else None})


@router.get("/{class_id}/attendance/report")
async def download_attendance_report(
    class_id: str,
    user: TeacherOnly,
    format: Literal["csv", "excel"] = Query("csv"),
):
    """Download every finalized attendance record of a class."""
    await _get_owned_class(class_id, user.user_id)

    records = await AttendanceRecord.find(AttendanceRecord.class_id == class_id).to_list()
    if not records:
        raise HTTPException(status_code=404, detail="No attendance records for this class")

    oids = [oid for oid in {parse_object_id(r.student_id) for r in records} if oid]
    students = await User.find({"_id": {"$in": oids}}).to_list()
    df = build_attendance_frame(records, {str(s.id): s.name for s in students})

    if format == "csv":
        return StreamingResponse(
            iter([render_csv(df)]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=attendance_{class_id}.csv"},
        )
    return StreamingResponse(
        render_excel(df),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=attendance_{class_id}.xlsx"},
    )
