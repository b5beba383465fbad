"""Store Boundary — SQLAlchemy failures surface as DatabaseError with operation context;
the session manager is built from Settings."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

import foodsharing.infrastructure.database as database
from foodsharing.config import Settings
from foodsharing.core.errors import DatabaseError, ErrorContext
from foodsharing.infrastructure.database import store_operation


async def test_sqlalchemy_failure_becomes_database_error():
    db = AsyncMock()
    with pytest.raises(DatabaseError) as exc_info:
        async with store_operation(db, "claim_next", ErrorContext(file_id=5)):
            raise OperationalError("UPDATE files", {}, Exception("disk I/O error"))

    db.rollback.assert_awaited_once()
    err = exc_info.value
    assert err.operation == "claim_next"
    assert err.context.file_id == 5
    assert err.http_status == 503
    assert "OperationalError" in err.message


async def test_domain_errors_pass_through_untouched():
    db = AsyncMock()
    with pytest.raises(KeyError):
        async with store_operation(db, "get_file"):
            raise KeyError("not a store failure")
    db.rollback.assert_not_awaited()


async def test_success_path_does_not_roll_back(test_db):
    async with store_operation(test_db, "noop"):
        pass


async def test_init_db_builds_manager_from_settings(monkeypatch):
    monkeypatch.setattr(database, "db_manager", None)
    manager = database.init_db(Settings(database_url="sqlite+aiosqlite:///:memory:"))
    try:
        assert database.db_manager is manager
        assert await manager.health_check() is True
    finally:
        await manager.dispose()


async def test_session_maps_operational_error(monkeypatch):
    monkeypatch.setattr(database, "db_manager", None)
    manager = database.init_db(Settings(database_url="sqlite+aiosqlite:///:memory:"))
    try:
        with pytest.raises(DatabaseError) as exc_info:
            async with manager.session() as db:
                await db.execute(text("SELECT * FROM no_such_table"))
        assert exc_info.value.operation == "execute"
    finally:
        await manager.dispose()


async def test_callers_operation_name_is_kept():
    db = AsyncMock()
    ctx = ErrorContext(operation="finalize", file_id=9)
    with pytest.raises(DatabaseError) as exc_info:
        async with store_operation(db, "transition_file", ctx):
            raise OperationalError("UPDATE files", {}, Exception("locked"))

    assert exc_info.value.context.operation == "finalize"
    assert exc_info.value.operation == "transition_file"
