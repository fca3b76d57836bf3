"""
Live attendance over WebSocket - handshake and a full teacher roll call.

Uses Starlette's TestClient without entering it, so the MongoDB lifespan
never runs; the app's store is the in-memory fake.
"""
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from rollcall.api.deps import create_access_token
from rollcall.models.attendance import AttendanceStatus

TEACHER_TOKEN = create_access_token("t1", "teacher")
STUDENT_TOKEN = create_access_token("s100", "student")


@pytest.fixture
def client(live_app):
    return TestClient(live_app)


@pytest.mark.parametrize("query", ["", "?token=garbage"])
def test_handshake_without_valid_token_is_closed(client, live_app, query):
    with client.websocket_connect(f"/ws{query}") as ws:
        assert ws.receive_json() == {"event": "ERROR", "data": {"message": "Unauthorized or invalid token"}}
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()
    assert len(live_app.state.connections) == 0


def test_teacher_runs_full_roll_call(client, live_app, store):
    r = client.post("/attendance/start", json={"classId": "c101"}, headers={"Authorization": TEACHER_TOKEN})
    assert r.status_code == 200
    assert r.json()["data"]["classId"] == "c101"

    with client.websocket_connect(f"/ws?token={TEACHER_TOKEN}") as ws:
        ws.send_json({"event": "TODAY_SUMMARY"})
        assert ws.receive_json() == {"event": "TODAY_SUMMARY", "data": {"present": 0, "absent": 0, "total": 0}}

        ws.send_json({"event": "ATTENDANCE_MARKED", "data": {"studentId": "s100", "status": "present"}})
        assert ws.receive_json() == {"event": "ATTENDANCE_MARKED", "data": {"studentId": "s100", "status": "present"}}

        ws.send_json({"event": "DONE"})
        assert ws.receive_json() == {
            "event": "DONE",
            "data": {"message": "Attendance persisted", "present": 1, "absent": 1, "total": 2},
        }

        # connection stays open after protocol errors
        ws.send_json({"event": "DONE"})
        assert ws.receive_json() == {"event": "ERROR", "data": {"message": "No active attendance session"}}
        ws.send_text("nope")
        assert ws.receive_json() == {"event": "ERROR", "data": {"message": "Invalid message format"}}

    assert live_app.state.sessions.current is None
    assert sorted((r.student_id, r.status) for r in store.saved) == [
        ("s100", AttendanceStatus.PRESENT),
        ("s101", AttendanceStatus.ABSENT),
    ]
    assert len(live_app.state.connections) == 0


def test_student_gets_private_status(client, live_app):
    client.post("/attendance/start", json={"classId": "c101"}, headers={"Authorization": f"Bearer {TEACHER_TOKEN}"})

    with client.websocket_connect(f"/ws?token={STUDENT_TOKEN}") as ws:
        ws.send_json({"event": "MY_ATTENDANCE"})
        assert ws.receive_json() == {"event": "MY_ATTENDANCE", "data": {"status": "not yet updated"}}

        ws.send_json({"event": "ATTENDANCE_MARKED", "data": {"studentId": "s100", "status": "present"}})
        assert ws.receive_json() == {"event": "ERROR", "data": {"message": "Forbidden, teacher event only"}}

        ws.send_json({"event": "WHATEVER"})
        assert ws.receive_json() == {"event": "ERROR", "data": {"message": "Unknown event"}}

    assert live_app.state.sessions.current.attendance == {}
