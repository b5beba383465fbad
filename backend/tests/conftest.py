"""Root conftest — shared test configuration and database fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database (test_engine)
    - Concurrency tests get a temp-file database so each session owns a connection
    - Seed helpers commit through test_db: rows are visible to every later session

Design Decisions:
    - SQLite via aiosqlite: FOR UPDATE SKIP LOCKED compiles away and the single
      writer lock serializes claims, which is exactly the property under test
"""

import itertools
import os
from datetime import datetime, timedelta, timezone

# Ensure tests never reach a real database
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

from foodsharing.core.domain_types import FileEvent, FileStatus, FileType
from foodsharing.core.permissions import Permission
from foodsharing.db.base import Base
from foodsharing.models.user import User
from foodsharing.services.file_store import FileRepository
from foodsharing.services.groups import GroupRepository

# Events that walk a fresh file to each status
PATH_TO = {
    FileStatus.CLIENT_UPLOAD_IN_PROGRESS: [],
    FileStatus.UPLOADED_BY_CLIENT: [FileEvent.CLIENT_SUCCEEDED],
    FileStatus.CLIENT_UPLOAD_ERROR: [FileEvent.CLIENT_FAILED],
    FileStatus.STORAGE_UPLOAD_IN_PROGRESS: [
        FileEvent.CLIENT_SUCCEEDED, FileEvent.CLAIMED,
    ],
    FileStatus.STORAGE_UPLOAD_ERROR: [
        FileEvent.CLIENT_SUCCEEDED, FileEvent.CLAIMED, FileEvent.TRANSFER_FAILED,
    ],
}


class FakeClock:
    """Controllable UTC clock for lease and timestamp tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    await _create_schema(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path):
    """Session factory over a temp-file database (one connection per session)."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}", echo=False,
    )
    await _create_schema(engine)
    yield async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_user(test_db):
    """Factory inserting users with unique emails."""
    counter = itertools.count(1)

    async def _make(name: str = "Test") -> User:
        user = User(email=f"user{next(counter)}@example.org", name=name)
        test_db.add(user)
        await test_db.commit()
        await test_db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_group(test_db):
    """Factory creating a group and adding the given users to it."""

    async def _make(name: str, permissions: Permission, *members: User):
        groups = GroupRepository(test_db)
        group = await groups.create(name, permissions)
        for user in members:
            await groups.add_member(group.id, user.id)
        return group

    return _make


@pytest.fixture
def make_file():
    """Factory registering a file and driving it to `status` through legal transitions."""

    async def _make(
        files: FileRepository,
        user_id: int,
        status: FileStatus = FileStatus.UPLOADED_BY_CLIENT,
        name: str = "receipt.pdf",
    ):
        snapshot = await files.create(
            user_id, FileType.DOCUMENT, "application/pdf", name, 2048,
        )
        for event in PATH_TO[status]:
            if event == FileEvent.CLAIMED:
                snapshot = await files.transition(
                    snapshot.id, event, claimed_at=files.clock(),
                )
            else:
                snapshot = await files.transition(snapshot.id, event)
        return snapshot

    return _make
