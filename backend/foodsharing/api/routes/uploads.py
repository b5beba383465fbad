"""Upload Queue Routes — worker and operator half of the upload lifecycle.

Invariants:
    - Every route requires MANAGE_UPLOADS
    - Claiming from an empty queue is 204 No Content, not an error
    - Finalize on an unknown id is 404, on a file not in STORAGE_UPLOAD_IN_PROGRESS 409
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.api.dependencies import IdPath, require
from foodsharing.config import get_settings
from foodsharing.core.domain_types import FileId, UserId
from foodsharing.core.errors import QueueEmptyError
from foodsharing.core.file_lifecycle import TransferFailed, TransferSucceeded
from foodsharing.core.permissions import Permission
from foodsharing.infrastructure.database import get_db
from foodsharing.schemas.files import FileSnapshot, FinalizeRequest, ReclaimResponse
from foodsharing.services.file_store import FileRepository
from foodsharing.services.upload_queue import UploadClaimQueue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/uploads", tags=["uploads"])


def get_queue(db: AsyncSession = Depends(get_db)) -> UploadClaimQueue:
    return UploadClaimQueue(FileRepository(db))


@router.post(
    "/claim",
    response_model=FileSnapshot,
    responses={204: {"description": "No file is waiting"}},
)
async def claim_next(
    _: UserId = Depends(require(Permission.MANAGE_UPLOADS)),
    queue: UploadClaimQueue = Depends(get_queue),
):
    try:
        return await queue.claim_next()
    except QueueEmptyError:
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{file_id}/finalize", response_model=FileSnapshot)
async def finalize(
    file_id: IdPath,
    body: FinalizeRequest,
    _: UserId = Depends(require(Permission.MANAGE_UPLOADS)),
    queue: UploadClaimQueue = Depends(get_queue),
):
    if body.succeeded:
        outcome = TransferSucceeded(body.url.strip())
    else:
        outcome = TransferFailed(body.reason or "")
    return await queue.finalize(FileId(file_id), outcome)


@router.post("/{file_id}/requeue", response_model=FileSnapshot)
async def requeue(
    file_id: IdPath,
    _: UserId = Depends(require(Permission.MANAGE_UPLOADS)),
    queue: UploadClaimQueue = Depends(get_queue),
):
    return await queue.requeue(FileId(file_id))


@router.post("/reclaim", response_model=ReclaimResponse)
async def reclaim_expired(
    lease_seconds: int | None = Query(None, ge=0),
    _: UserId = Depends(require(Permission.MANAGE_UPLOADS)),
    queue: UploadClaimQueue = Depends(get_queue),
):
    lease = lease_seconds if lease_seconds is not None else get_settings().upload_lease_seconds
    return ReclaimResponse(reclaimed=await queue.reclaim_expired(lease))


@router.get("/stats")
async def queue_stats(
    _: UserId = Depends(require(Permission.MANAGE_UPLOADS)),
    db: AsyncSession = Depends(get_db),
):
    counts = await FileRepository(db).count_by_status()
    return {file_status.name.lower(): count for file_status, count in counts.items()}
