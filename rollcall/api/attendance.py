"""Live attendance session control over REST."""
from fastapi import APIRouter, HTTPException

from rollcall.api.deps import Sessions, Store, TeacherOnly
from rollcall.api.responses import ok
from rollcall.models.attendance import StartAttendanceRequest
from rollcall.services.live_session import NoActiveSession, SessionAlreadyActive

router = APIRouter()


@router.post("/start")
async def start_attendance(data: StartAttendanceRequest, user: TeacherOnly, sessions: Sessions, store: Store):
    if not await store.class_exists(data.classId):
        raise HTTPException(status_code=404, detail="Class not found")
    if await store.class_owner(data.classId) != user.user_id:
        raise HTTPException(status_code=403, detail="Forbidden, not class teacher")

    try:
        session = await sessions.start(data.classId)
    except SessionAlreadyActive as e:
        raise HTTPException(status_code=400, detail=e.message)

    return ok({"classId": session.class_id, "startedAt": session.started_at.isoformat()})


@router.get("/active")
async def active_attendance(user: TeacherOnly, sessions: Sessions):
    """Current live session, if any, with its running summary."""
    session = sessions.current
    if session is None:
        return ok({"status": sessions.status})
    try:
        summary = await sessions.summarize()
    except NoActiveSession:
        # finalized while waiting for the lock
        return ok({"status": sessions.status})
    return ok(
        {
            "status": sessions.status,
            "classId": session.class_id,
            "startedAt": session.started_at.isoformat(),
            "summary": summary.as_dict(),
        }
    )
