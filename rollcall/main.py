"""Rollcall - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import ServerSelectionTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rollcall.api import attendance, auth, classes, live, students
from rollcall.api.responses import http_exception_handler, validation_exception_handler
from rollcall.config import settings
from rollcall.db import db_shutdown, db_startup
from rollcall.services.connections import ConnectionRegistry
from rollcall.services.live_session import SessionManager
from rollcall.services.store import MongoAttendanceStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await db_startup()
    except ServerSelectionTimeoutError as e:
        logger.error(
            "MongoDB is not running. Start it with: docker compose up -d (from project root)"
        )
        raise RuntimeError(
            "MongoDB connection failed. Start MongoDB (e.g. docker compose up -d)."
        ) from e
    yield
    await db_shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Classroom attendance: accounts, classes and live roll call over WebSocket",
    version="0.1.0",
    lifespan=lifespan,
)

# One live session per process, shared by REST and the realtime channel
app.state.sessions = SessionManager()
app.state.connections = ConnectionRegistry()
app.state.store = MongoAttendanceStore()

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(classes.router, prefix="/class", tags=["Classes"])
app.include_router(students.router, prefix="/students", tags=["Students"])
app.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
app.include_router(live.router, tags=["Live Attendance"])


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name, "connections": len(app.state.connections)}
