"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, GroupId, FileId wrap the integer serial keys — never use bare int in domain logic
    - FileStatus integer values are persisted: 0..5 in lifecycle order, never renumbered
    - FileType values are persisted as lowercase strings

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - IntEnum for FileStatus: the column is an integer and the queue predicate compares integers
    - str Enum for FileType: serializes to JSON without custom encoders
"""

from enum import Enum, IntEnum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", int)
GroupId = NewType("GroupId", int)
FileId = NewType("FileId", int)

# Largest value a BIGINT column holds; ids and sizes above it never reach the store
MAX_ID = 2**63 - 1


# ─── Enums ───────────────────────────────────────────────────────

class FileStatus(IntEnum):
    """Upload lifecycle states — maps to DB `status` column."""
    CLIENT_UPLOAD_IN_PROGRESS = 0
    UPLOADED_BY_CLIENT = 1
    CLIENT_UPLOAD_ERROR = 2
    STORAGE_UPLOAD_IN_PROGRESS = 3
    UPLOADED_TO_STORAGE = 4
    STORAGE_UPLOAD_ERROR = 5


class FileType(str, Enum):
    """Declared kind of an uploaded artifact."""
    IMAGE = "image"
    DOCUMENT = "document"
    OTHER = "other"


class FileEvent(str, Enum):
    """Events that move a file between statuses."""
    CLIENT_SUCCEEDED = "client_succeeded"
    CLIENT_FAILED = "client_failed"
    CLAIMED = "claimed"
    TRANSFER_SUCCEEDED = "transfer_succeeded"
    TRANSFER_FAILED = "transfer_failed"
    # Recovery — only ever triggered by an explicit sweep or operator call
    LEASE_EXPIRED = "lease_expired"
    REQUEUED = "requeued"
