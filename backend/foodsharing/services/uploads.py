"""Upload Service — client-facing half of the file lifecycle.

Invariants:
    - register_intent creates a file in CLIENT_UPLOAD_IN_PROGRESS owned by an existing user
    - report_client_result is owner-only: another user gets ForbiddenError, not NotFound
    - Client reports move CLIENT_UPLOAD_IN_PROGRESS -> UPLOADED_BY_CLIENT | CLIENT_UPLOAD_ERROR only

Design Decisions:
    - Ownership read before the conditional UPDATE: user_id never changes after creation,
      so the read cannot race with the status write
"""

import logging

from foodsharing.core.domain_types import FileEvent, FileId, FileType, UserId
from foodsharing.core.errors import ErrorContext, ForbiddenError, ResourceNotFoundError
from foodsharing.core.repository_protocols import UserDirectory
from foodsharing.schemas.files import FileSnapshot
from foodsharing.services.file_store import FileRepository

logger = logging.getLogger(__name__)


class UploadService:
    """Register upload intent and record the client's outcome."""

    def __init__(self, files: FileRepository, users: UserDirectory):
        self.files = files
        self.users = users

    async def register_intent(
        self,
        user_id: UserId,
        file_type: FileType,
        content_type: str,
        name: str,
        size: int,
    ) -> FileSnapshot:
        if not await self.users.exists(user_id):
            raise ResourceNotFoundError(
                "User", str(user_id),
                ErrorContext(operation="register_intent", user_id=user_id),
            )
        snapshot = await self.files.create(user_id, file_type, content_type, name, size)
        logger.info(
            f"Upload intent registered for '{name}'",
            extra={"file_id": snapshot.id, "user_id": user_id},
        )
        return snapshot

    async def report_client_result(
        self, user_id: UserId, file_id: FileId, succeeded: bool,
    ) -> FileSnapshot:
        current = await self.files.get_by_id(file_id)
        if current.user_id != user_id:
            raise ForbiddenError(
                user_id, "OWNER",
                ErrorContext(operation="report_client_result", file_id=file_id),
            )
        event = FileEvent.CLIENT_SUCCEEDED if succeeded else FileEvent.CLIENT_FAILED
        snapshot = await self.files.transition(file_id, event)
        logger.info(
            f"Client upload {event.value}",
            extra={"file_id": file_id, "user_id": user_id},
        )
        return snapshot

    async def get(self, file_id: FileId) -> FileSnapshot:
        return await self.files.get_by_id(file_id)
