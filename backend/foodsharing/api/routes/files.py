"""File Routes — client half of the upload lifecycle.

Invariants:
    - The acting user owns every file it registers
    - Only the owner reports the client result (403 otherwise)
    - A file is readable by its owner or by holders of MANAGE_UPLOADS
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.api.dependencies import IdPath, get_actor_id, get_authorization
from foodsharing.core.domain_types import FileId, UserId
from foodsharing.core.permissions import Permission
from foodsharing.infrastructure.database import get_db
from foodsharing.schemas.files import ClientReport, FileSnapshot, UploadIntent
from foodsharing.services.authorization import AuthorizationChecker, SqlUserDirectory
from foodsharing.services.file_store import FileRepository
from foodsharing.services.uploads import UploadService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/files", tags=["files"])


def get_upload_service(db: AsyncSession = Depends(get_db)) -> UploadService:
    return UploadService(FileRepository(db), SqlUserDirectory(db))


@router.post(
    "", response_model=FileSnapshot, status_code=status.HTTP_201_CREATED,
)
async def register_upload(
    body: UploadIntent,
    actor_id: UserId = Depends(get_actor_id),
    uploads: UploadService = Depends(get_upload_service),
):
    """Register upload intent; the file starts in CLIENT_UPLOAD_IN_PROGRESS."""
    return await uploads.register_intent(
        actor_id, body.type, body.content_type, body.name, body.size,
    )


@router.post("/{file_id}/client-result", response_model=FileSnapshot)
async def report_client_result(
    file_id: IdPath,
    body: ClientReport,
    actor_id: UserId = Depends(get_actor_id),
    uploads: UploadService = Depends(get_upload_service),
):
    return await uploads.report_client_result(
        actor_id, FileId(file_id), body.succeeded,
    )


@router.get("/{file_id}", response_model=FileSnapshot)
async def get_file(
    file_id: IdPath,
    actor_id: UserId = Depends(get_actor_id),
    uploads: UploadService = Depends(get_upload_service),
    authz: AuthorizationChecker = Depends(get_authorization),
):
    snapshot = await uploads.get(FileId(file_id))
    if snapshot.user_id != actor_id:
        await authz.authorize(actor_id, Permission.MANAGE_UPLOADS)
    return snapshot
