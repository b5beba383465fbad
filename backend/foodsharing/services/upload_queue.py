"""Upload Claim Queue — hands each pending file to exactly one worker and records the outcome.

Invariants:
    - claim_next is one atomic conditional UPDATE: no file is claimable by two callers at once
    - claim_next never waits: a claimed file or QueueEmptyError, immediately
    - finalize affects exactly one file currently in STORAGE_UPLOAD_IN_PROGRESS;
      unknown id -> ResourceNotFoundError, other status -> InvalidTransitionError
    - Success writes status and url in the same statement
    - Store failures propagate as DatabaseError; nothing is retried here

Design Decisions:
    - Bounded re-issue of the claim statement when it matched nothing although eligible
      rows exist: under PostgreSQL READ COMMITTED a row committed by a concurrent
      claimant between snapshot and lock is dropped by the recheck, and LIMIT 1 then
      yields no row. Re-issuing takes a fresh snapshot; it is not a failure retry
    - Lease expiry and requeue are explicit calls (sweep, operator), never implicit
"""

import logging
from datetime import timedelta

from sqlalchemy import exists, select

from foodsharing.core.domain_types import FileEvent, FileId, FileStatus
from foodsharing.core.errors import ErrorContext, QueueEmptyError
from foodsharing.core.file_lifecycle import (
    TransferOutcome, TransferSucceeded, outcome_event,
)
from foodsharing.infrastructure.database import store_operation
from foodsharing.models.file import FileRecord
from foodsharing.schemas.files import FileSnapshot
from foodsharing.services.file_store import FileRepository

logger = logging.getLogger(__name__)

CLAIM_ATTEMPTS: int = 3


class UploadClaimQueue:
    """Claim-and-transition queue over the files table."""

    def __init__(self, files: FileRepository, claim_attempts: int = CLAIM_ATTEMPTS):
        self.files = files
        self.claim_attempts = claim_attempts

    async def claim_next(self) -> FileSnapshot:
        """Claim the oldest UPLOADED_BY_CLIENT file or raise QueueEmptyError."""
        for attempt in range(self.claim_attempts):
            claimed = await self.files.claim_oldest()
            if claimed is not None:
                logger.info(
                    f"Claimed file '{claimed.name}' for storage upload",
                    extra={"file_id": claimed.id, "attempt": attempt + 1},
                )
                return claimed
            if not await self._has_eligible():
                break
        raise QueueEmptyError(ErrorContext(operation="claim_next"))

    async def finalize(self, file_id: FileId, outcome: TransferOutcome) -> FileSnapshot:
        """Record the transfer outcome for a claimed file."""
        event = outcome_event(outcome)
        if isinstance(outcome, TransferSucceeded):
            snapshot = await self.files.transition(file_id, event, url=outcome.url)
            logger.info(
                "Storage upload finished", extra={"file_id": file_id},
            )
        else:
            snapshot = await self.files.transition(file_id, event)
            logger.warning(
                f"Storage upload failed: {outcome.reason or 'no reason given'}",
                extra={"file_id": file_id, "error_code": "TRANSFER_FAILED"},
            )
        return snapshot

    async def reclaim_expired(self, lease_seconds: int) -> list[FileId]:
        """Return files claimed more than `lease_seconds` ago to UPLOADED_BY_CLIENT."""
        cutoff = self.files.clock() - timedelta(seconds=lease_seconds)
        reclaimed = await self.files.reclaim_stale(cutoff)
        if reclaimed:
            logger.warning(
                f"Reclaimed {len(reclaimed)} file(s) with expired lease: {reclaimed}",
                extra={"operation": "reclaim_expired"},
            )
        return reclaimed

    async def requeue(self, file_id: FileId) -> FileSnapshot:
        """Operator retry: STORAGE_UPLOAD_ERROR -> UPLOADED_BY_CLIENT."""
        snapshot = await self.files.transition(file_id, FileEvent.REQUEUED)
        logger.info("File requeued for storage upload", extra={"file_id": file_id})
        return snapshot

    async def _has_eligible(self) -> bool:
        db = self.files.db
        async with store_operation(db, "claim_next"):
            found = await db.scalar(
                select(exists().where(
                    FileRecord.status == int(FileStatus.UPLOADED_BY_CLIENT),
                )),
            )
            await db.commit()
        return bool(found)
