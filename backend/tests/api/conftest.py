"""API test fixtures — FastAPI test client over the in-memory database.

Invariants:
    - get_db dependency overridden to use the test session factory
    - db_manager patched so the readiness probe sees the test engine
    - Actors: admin (ADMIN), operator (MANAGE_UPLOADS), member (no groups)
"""

import pytest
from httpx import ASGITransport, AsyncClient

import foodsharing.infrastructure.database as db_module
from foodsharing.core.permissions import Permission
from foodsharing.infrastructure.database import get_db, DatabaseSessionManager
from foodsharing.main import app


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def auth():
    """Header builder for the acting user."""
    return lambda user: {"X-User-Id": str(user.id)}


@pytest.fixture
async def admin(make_user, make_group):
    user = await make_user("Admin")
    await make_group("Admins", Permission.ADMIN, user)
    return user


@pytest.fixture
async def operator(make_user, make_group):
    user = await make_user("Operator")
    await make_group("Upload operators", Permission.MANAGE_UPLOADS, user)
    return user


@pytest.fixture
async def member(make_user):
    return await make_user("Member")
