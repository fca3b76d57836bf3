"""
Pytest configuration for rollcall tests.

The live session core runs against an in-memory store and fake sockets.
Database-backed API tests use the `mongo_db` fixture, which skips when no
MongoDB answers at MONGODB_URL.
"""
import asyncio
import json
import os
import uuid

import pytest

# Settings refuse the default secret outside debug; set before rollcall.config is imported.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DEBUG", "true")

from rollcall.models.user import UserRole  # noqa: E402
from rollcall.services.connections import Connection, ConnectionRegistry  # noqa: E402
from rollcall.services.live_session import SessionManager  # noqa: E402
from rollcall.services.protocol import SessionProtocol  # noqa: E402
from rollcall.services.store import FinalRecord  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeSocket:
    """Collects every text frame sent to it."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_text(self, payload: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(payload))


class FakeStore:
    """In-memory AttendanceStore: class_id -> (owner id, enrolled student ids).

    Writes behave like the unique ``(session_id, student_id)`` index: a record
    already stored for that pair is skipped. ``fail_after`` stores that many
    records of a batch and then fails. ``roster_gate`` / ``save_gate`` hold the
    call until the test sets them; ``roster_entered`` / ``save_entered`` are set
    when the call starts waiting.
    """

    def __init__(self, classes: dict[str, tuple[str, set[str]]] | None = None):
        self.classes = classes or {}
        self.saved: list[FinalRecord] = []
        self.fail_roster = False
        self.fail_save = False
        self.fail_after: int | None = None
        self.roster_gate: asyncio.Event | None = None
        self.save_gate: asyncio.Event | None = None
        self.roster_entered = asyncio.Event()
        self.save_entered = asyncio.Event()

    async def class_exists(self, class_id: str) -> bool:
        return class_id in self.classes

    async def class_owner(self, class_id: str) -> str | None:
        entry = self.classes.get(class_id)
        return entry[0] if entry else None

    async def enrolled_students(self, class_id: str) -> set[str]:
        self.roster_entered.set()
        if self.roster_gate is not None:
            await self.roster_gate.wait()
        if self.fail_roster:
            raise ConnectionError("roster unavailable")
        entry = self.classes.get(class_id)
        return set(entry[1]) if entry else set()

    async def is_enrolled(self, class_id: str, user_id: str) -> bool:
        return user_id in await self.enrolled_students(class_id)

    async def save_records(self, records: list[FinalRecord]) -> None:
        self.save_entered.set()
        if self.save_gate is not None:
            await self.save_gate.wait()
        if self.fail_save:
            raise ConnectionError("write failed")
        written = {(r.session_id, r.student_id) for r in self.saved}
        for i, record in enumerate(records):
            if self.fail_after is not None and i >= self.fail_after:
                raise ConnectionError(f"write failed after {self.fail_after} records")
            if (record.session_id, record.student_id) not in written:
                self.saved.append(record)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore({"c101": ("t1", {"s100", "s101"})})


@pytest.fixture
def sessions() -> SessionManager:
    return SessionManager()


@pytest.fixture
def connections() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def protocol(sessions, connections, store) -> SessionProtocol:
    return SessionProtocol(sessions, connections, store)


@pytest.fixture
def connect(connections):
    def _connect(user_id: str, role: UserRole, fail: bool = False) -> Connection:
        connection = Connection(user_id=user_id, role=role, websocket=FakeSocket(fail=fail))
        connections.register(connection)
        return connection

    return _connect


@pytest.fixture
def live_app(store):
    """The FastAPI app with fresh live-session state and the fake store."""
    from rollcall import main

    app = main.app
    saved = (app.state.sessions, app.state.connections, app.state.store)
    app.state.sessions = SessionManager()
    app.state.connections = ConnectionRegistry()
    app.state.store = store
    try:
        yield app
    finally:
        app.state.sessions, app.state.connections, app.state.store = saved


@pytest.fixture
async def mongo_db():
    """Beanie initialised against a throwaway database; skips without MongoDB."""
    from beanie import init_beanie
    from motor.motor_asyncio import AsyncIOMotorClient
    from pymongo.errors import PyMongoError

    from rollcall.config import settings
    from rollcall.models import AttendanceRecord, ClassRoom, User

    url = os.getenv("MONGODB_URL", settings.mongodb_url)
    client = AsyncIOMotorClient(url, serverSelectionTimeoutMS=1000)
    try:
        await client.admin.command("ping")
    except PyMongoError:
        client.close()
        pytest.skip(f"MongoDB not reachable at {url}")

    db_name = f"rollcall_test_{uuid.uuid4().hex[:8]}"
    await init_beanie(database=client[db_name], document_models=[User, ClassRoom, AttendanceRecord])
    try:
        yield client[db_name]
    finally:
        await client.drop_database(db_name)
        client.close()
