"""Upload Worker — polling loop that drains the claim queue through an external BlobTransfer.

Invariants:
    - One DB session per claim: a crashed transfer never holds a connection or transaction
    - Every claimed file is finalized at most once, by the worker that claimed it
    - Transfer exceptions become TransferFailed; store failures (DatabaseError) propagate
    - A finalize rejected because the lease sweep already reclaimed the file is logged
      and dropped: the file is back in the queue for another claim
    - Backoff lives here, never in the queue: exponential with ±25% jitter while idle
    - The lease sweep runs at most once per reclaim_interval_seconds

Design Decisions:
    - BlobTransfer injected (Protocol): the byte transfer is a deployment concern
    - The queue is reached through the ClaimQueue Protocol; the default factory binds
      UploadClaimQueue to the per-claim session
    - Clock and monotonic source injectable: tests drive lease and sweep timing directly
    - CancelledError is BaseException and passes through: a claimed file is then left
      STORAGE_UPLOAD_IN_PROGRESS until the lease sweep returns it to the queue
    - run_worker builds its own engine via db/session.py: the worker process has no
      FastAPI lifespan
"""

import asyncio
import logging
import random
import signal
import time
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foodsharing.config import Settings, get_settings
from foodsharing.core.domain_types import FileId
from foodsharing.core.errors import InvalidTransitionError, QueueEmptyError
from foodsharing.core.file_lifecycle import (
    TransferFailed, TransferOutcome, TransferSucceeded,
)
from foodsharing.core.repository_protocols import BlobTransfer, ClaimQueue, FileLike
from foodsharing.db.session import create_session_factory
from foodsharing.infrastructure.observability import setup_logging
from foodsharing.db.base import utcnow
from foodsharing.services.file_store import FileRepository
from foodsharing.services.upload_queue import UploadClaimQueue

logger = logging.getLogger(__name__)


class UploadWorker:
    """Claims files one at a time and pushes them to blob storage."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transfer: BlobTransfer,
        *,
        lease_seconds: int = 900,
        poll_interval_ms: int = 500,
        max_backoff_ms: int = 30_000,
        reclaim_interval_seconds: int = 60,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        queue_factory: Callable[[AsyncSession], ClaimQueue] | None = None,
    ):
        self.session_factory = session_factory
        self.transfer = transfer
        self.lease_seconds = lease_seconds
        self.poll_interval_ms = poll_interval_ms
        self.max_backoff_ms = max_backoff_ms
        self.reclaim_interval_seconds = reclaim_interval_seconds
        self.clock = clock
        self.monotonic = monotonic
        self.queue_factory = queue_factory or self._sql_queue
        self._last_sweep: float | None = None

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        transfer: BlobTransfer,
        settings: Settings | None = None,
    ) -> "UploadWorker":
        settings = settings or get_settings()
        return cls(
            session_factory,
            transfer,
            lease_seconds=settings.upload_lease_seconds,
            poll_interval_ms=settings.worker_poll_interval_ms,
            max_backoff_ms=settings.worker_max_backoff_ms,
            reclaim_interval_seconds=settings.worker_reclaim_interval_seconds,
        )

    async def run_once(self) -> bool:
        """Claim, transfer and finalize one file. False when the queue was empty."""
        async with self.session_factory() as db:
            queue = self.queue_factory(db)
            try:
                file = await queue.claim_next()
            except QueueEmptyError:
                return False
            outcome = await self._transfer(file)
            try:
                await queue.finalize(FileId(file.id), outcome)
            except InvalidTransitionError:
                logger.warning(
                    f"Claim on '{file.name}' expired before finalize; outcome dropped",
                    extra={"file_id": file.id, "error_code": "LEASE_EXPIRED"},
                )
        return True

    async def sweep(self) -> list[FileId]:
        """Return expired claims to the queue."""
        self._last_sweep = self.monotonic()
        async with self.session_factory() as db:
            queue = self.queue_factory(db)
            return await queue.reclaim_expired(self.lease_seconds)

    async def run_forever(self, stop: asyncio.Event) -> None:
        """Poll until `stop` is set, backing off while the queue stays empty."""
        idle_polls = 0
        logger.info("Upload worker started")
        while not stop.is_set():
            if self._sweep_due():
                await self.sweep()
            if await self.run_once():
                idle_polls = 0
                continue
            delay = self._backoff(idle_polls)
            idle_polls += 1
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay / 1000)
            except asyncio.TimeoutError:
                pass
        logger.info("Upload worker stopped")

    def _sql_queue(self, db: AsyncSession) -> ClaimQueue:
        return UploadClaimQueue(FileRepository(db, self.clock))

    async def _transfer(self, file: FileLike) -> TransferOutcome:
        try:
            url = await self.transfer.transfer(file)
        except Exception as e:
            logger.error(
                f"Blob transfer raised for '{file.name}': {e}",
                extra={"file_id": file.id, "error_code": "TRANSFER_FAILED"},
                exc_info=True,
            )
            return TransferFailed(str(e))
        if not url or not url.strip():
            return TransferFailed("transfer returned an empty url")
        return TransferSucceeded(url)

    def _sweep_due(self) -> bool:
        if self._last_sweep is None:
            return True
        return self.monotonic() - self._last_sweep >= self.reclaim_interval_seconds

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_backoff_ms, (2 ** attempt) * self.poll_interval_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


async def run_worker(
    transfer: BlobTransfer,
    stop: asyncio.Event | None = None,
    settings: Settings | None = None,
) -> None:
    """Worker process entry point: own engine, SIGINT/SIGTERM stop the loop."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    engine, session_factory = create_session_factory(settings)
    stop = stop or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        worker = UploadWorker.from_settings(session_factory, transfer, settings)
        await worker.run_forever(stop)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await engine.dispose()
