"""FileRecord ORM — one uploaded artifact and the status of its storage transfer.

Invariants:
    - status holds a FileStatus integer (0..5); changed only through conditional UPDATEs
    - url is non-NULL iff status == UPLOADED_TO_STORAGE
    - claimed_at is non-NULL iff status == STORAGE_UPLOAD_IN_PROGRESS
    - Never hard-deleted by this package

Design Decisions:
    - Index on (status, id): the claim query scans for the oldest UPLOADED_BY_CLIENT row
    - CHECK constraint mirrors the url invariant (4 == UPLOADED_TO_STORAGE)
    - claimed_at column: lets the reconciliation sweep find claims whose worker died
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger, CheckConstraint, SmallInteger, String, DateTime,
    ForeignKey, Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from foodsharing.core.domain_types import FileStatus
from foodsharing.db.base import Base, ID, TimestampMixin


class FileRecord(TimestampMixin, Base):
    """Uploaded file metadata — bytes live in blob storage once uploaded."""
    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_status_id", "status", "id"),
        CheckConstraint(
            "(status = 4 AND url IS NOT NULL) OR (status <> 4 AND url IS NULL)",
            name="ck_files_url_iff_uploaded",
        ),
    )

    id: Mapped[int] = mapped_column(ID, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID, ForeignKey("users.id"), nullable=False,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=int(FileStatus.CLIENT_UPLOAD_IN_PROGRESS),
    )
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
