"""
Application startup - database wiring in the lifespan.
"""
import pytest
from pymongo.errors import ServerSelectionTimeoutError

from rollcall import main

pytestmark = pytest.mark.anyio


async def test_lifespan_connects_and_disconnects(monkeypatch):
    calls = []

    async def startup():
        calls.append("startup")

    async def shutdown():
        calls.append("shutdown")

    monkeypatch.setattr(main, "db_startup", startup)
    monkeypatch.setattr(main, "db_shutdown", shutdown)

    async with main.lifespan(main.app):
        assert calls == ["startup"]
    assert calls == ["startup", "shutdown"]


async def test_lifespan_reports_unreachable_mongodb(monkeypatch):
    async def unreachable():
        raise ServerSelectionTimeoutError("no servers")

    monkeypatch.setattr(main, "db_startup", unreachable)

    with pytest.raises(RuntimeError, match="MongoDB connection failed"):
        async with main.lifespan(main.app):
            pass
