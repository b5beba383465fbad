"""File Repository — every FileRecord write is one conditional UPDATE derived from the transition table.

Invariants:
    - No read-then-write: every status change is `UPDATE ... WHERE id = ? AND status = <source>`
    - claim_oldest selects and transitions in ONE statement (row-locked subquery, SKIP LOCKED)
    - URL written in the same statement as UPLOADED_TO_STORAGE; cleared claimed_at likewise
    - Zero affected rows is diagnosed after rollback: missing row -> ResourceNotFoundError,
      row in another status -> InvalidTransitionError
    - Timestamps come from the injected clock (UTC)

Design Decisions:
    - Source/target statuses looked up in core/file_lifecycle.py, never hard-coded here
    - RETURNING instead of a follow-up SELECT: the caller sees exactly the row it changed
    - FOR UPDATE SKIP LOCKED compiles to nothing on SQLite, where the single writer
      lock already serializes the UPDATE
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.core.domain_types import FileEvent, FileId, FileStatus, FileType, UserId
from foodsharing.core.errors import (
    ErrorContext, InvalidTransitionError, ResourceNotFoundError,
)
from foodsharing.core.file_lifecycle import next_status, source_status
from foodsharing.db.base import utcnow
from foodsharing.infrastructure.database import store_operation
from foodsharing.models.file import FileRecord
from foodsharing.schemas.files import FileSnapshot

logger = logging.getLogger(__name__)

_SNAPSHOT_COLUMNS = (
    FileRecord.id,
    FileRecord.user_id,
    FileRecord.type,
    FileRecord.content_type,
    FileRecord.name,
    FileRecord.size,
    FileRecord.status,
    FileRecord.url,
    FileRecord.claimed_at,
    FileRecord.created_at,
    FileRecord.updated_at,
)


def _snapshot(row) -> FileSnapshot:
    return FileSnapshot.model_validate(dict(row._mapping))


class FileRepository:
    """Persistence for FileRecord rows."""

    def __init__(
        self, db: AsyncSession, clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.clock = clock

    async def create(
        self,
        user_id: UserId,
        file_type: FileType,
        content_type: str,
        name: str,
        size: int,
    ) -> FileSnapshot:
        record = FileRecord(
            user_id=user_id,
            type=file_type.value,
            content_type=content_type,
            name=name,
            size=size,
            status=int(FileStatus.CLIENT_UPLOAD_IN_PROGRESS),
            created_at=self.clock(),
        )
        async with store_operation(
            self.db, "create_file", ErrorContext(user_id=user_id),
        ):
            self.db.add(record)
            await self.db.commit()
            await self.db.refresh(record)
        return FileSnapshot.model_validate(record)

    async def get_by_id(self, file_id: FileId) -> FileSnapshot:
        context = ErrorContext(file_id=file_id)
        async with store_operation(self.db, "get_file", context):
            row = (await self.db.execute(
                select(*_SNAPSHOT_COLUMNS).where(FileRecord.id == file_id),
            )).one_or_none()
        if row is None:
            raise ResourceNotFoundError("File", str(file_id), context)
        return _snapshot(row)

    async def transition(
        self, file_id: FileId, event: FileEvent, **values,
    ) -> FileSnapshot:
        """Apply `event` to one file iff it is currently in the event's source status."""
        context = ErrorContext(operation=event.value, file_id=file_id)
        source = source_status(event)
        target = next_status(source, event, context)
        now = self.clock()
        values.setdefault("claimed_at", None)
        stmt = (
            update(FileRecord)
            .where(FileRecord.id == file_id)
            .where(FileRecord.status == int(source))
            .values(status=int(target), updated_at=now, **values)
            .returning(*_SNAPSHOT_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        async with store_operation(self.db, event.value, context):
            row = (await self.db.execute(stmt)).one_or_none()
            if row is None:
                await self.db.rollback()
                await self._raise_for_missed_transition(file_id, event, context)
            await self.db.commit()
        return _snapshot(row)

    async def claim_oldest(self) -> FileSnapshot | None:
        """Atomically move the oldest UPLOADED_BY_CLIENT file to STORAGE_UPLOAD_IN_PROGRESS."""
        source = source_status(FileEvent.CLAIMED)
        target = next_status(source, FileEvent.CLAIMED)
        now = self.clock()
        eligible = (
            select(FileRecord.id)
            .where(FileRecord.status == int(source))
            .order_by(FileRecord.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(FileRecord)
            .where(FileRecord.id == eligible)
            .where(FileRecord.status == int(source))
            .values(status=int(target), claimed_at=now, updated_at=now)
            .returning(*_SNAPSHOT_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        async with store_operation(self.db, "claim_next"):
            row = (await self.db.execute(stmt)).one_or_none()
            await self.db.commit()
        return _snapshot(row) if row is not None else None

    async def reclaim_stale(self, cutoff: datetime) -> list[FileId]:
        """Return files claimed before `cutoff` to the queue, in one statement."""
        source = source_status(FileEvent.LEASE_EXPIRED)
        target = next_status(source, FileEvent.LEASE_EXPIRED)
        claimed = func.coalesce(FileRecord.claimed_at, FileRecord.updated_at)
        stmt = (
            update(FileRecord)
            .where(FileRecord.status == int(source))
            .where(claimed < cutoff)
            .values(status=int(target), claimed_at=None, updated_at=self.clock())
            .returning(FileRecord.id)
            .execution_options(synchronize_session=False)
        )
        async with store_operation(self.db, "reclaim_expired"):
            ids = [FileId(row.id) for row in (await self.db.execute(stmt)).all()]
            await self.db.commit()
        return sorted(ids)

    async def count_by_status(self) -> dict[FileStatus, int]:
        async with store_operation(self.db, "count_files_by_status"):
            rows = (await self.db.execute(
                select(FileRecord.status, func.count()).group_by(FileRecord.status),
            )).all()
        counts = {status: 0 for status in FileStatus}
        for status, count in rows:
            counts[FileStatus(status)] = count
        return counts

    async def _raise_for_missed_transition(
        self, file_id: FileId, event: FileEvent, context: ErrorContext,
    ) -> None:
        current = await self.db.scalar(
            select(FileRecord.status).where(FileRecord.id == file_id),
        )
        if current is None:
            raise ResourceNotFoundError("File", str(file_id), context)
        logger.warning(
            f"Rejected {event.value} for file {file_id} in status {FileStatus(current).name}",
            extra={"file_id": file_id, "error_code": "INVALID_TRANSITION"},
        )
        raise InvalidTransitionError(FileStatus(current).name, event.value, context)
