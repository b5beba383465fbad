"""File Schemas — upload intent, client report, worker finalize, and the file snapshot.

Invariants:
    - FileSnapshot is immutable: workers receive a copy, never a live ORM row
    - FinalizeRequest.url required iff succeeded (cross-field validation)
    - size is non-negative and fits a BIGINT; name and content_type are stripped and non-empty

Design Decisions:
    - from_attributes on FileSnapshot: built from ORM rows and RETURNING mappings alike
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from foodsharing.core.domain_types import MAX_ID, FileStatus, FileType


class FileSnapshot(BaseModel):
    """Point-in-time copy of one FileRecord row."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    type: FileType
    content_type: str
    name: str
    size: int
    status: FileStatus
    url: str | None = None
    claimed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class UploadIntent(BaseModel):
    """Client announces an upload before sending bytes."""
    type: FileType = FileType.OTHER
    content_type: str = Field(min_length=1, max_length=255)
    name: str = Field(min_length=1, max_length=500)
    size: int = Field(ge=0, le=MAX_ID)

    @field_validator("content_type", "name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty or whitespace")
        return v


class ClientReport(BaseModel):
    """Client reports whether its upload finished."""
    succeeded: bool


class FinalizeRequest(BaseModel):
    """Worker reports the storage transfer outcome."""
    succeeded: bool
    url: str | None = Field(None, max_length=2048)
    reason: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_url(self):
        if self.succeeded and not (self.url and self.url.strip()):
            raise ValueError("successful finalize requires url")
        if not self.succeeded and self.url:
            raise ValueError("failed finalize must not carry url")
        return self


class ReclaimResponse(BaseModel):
    reclaimed: list[int]
