"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these protocols are never async themselves
    - BlobTransfer is the only contract with no implementation in this repo:
      the byte transfer belongs to the deployment (S3, GCS, local disk)
"""

from typing import Protocol

from foodsharing.core.domain_types import FileId, GroupId, UserId
from foodsharing.core.permissions import Permission


class FileLike(Protocol):
    """Structural contract for file snapshots handed to workers."""
    id: int
    user_id: int
    type: str
    content_type: str
    name: str
    size: int


class UserDirectory(Protocol):
    """Contract for "does this user exist" — user CRUD lives elsewhere."""
    async def exists(self, user_id: UserId) -> bool: ...


class MembershipStore(Protocol):
    """Contract for (user, group) pair persistence."""
    async def add_member(self, group_id: GroupId, user_id: UserId) -> bool: ...
    async def remove_member(self, group_id: GroupId, user_id: UserId) -> bool: ...
    async def user_group_permissions(self, user_id: UserId) -> list[Permission]: ...


class BlobTransfer(Protocol):
    """Contract for the external byte transfer — returns the final URL."""
    async def transfer(self, file: FileLike) -> str: ...


class ClaimQueue(Protocol):
    """Contract the worker loop needs from the upload claim queue."""
    async def claim_next(self) -> FileLike: ...
    async def finalize(self, file_id: FileId, outcome: object) -> FileLike: ...
    async def reclaim_expired(self, lease_seconds: int) -> list[FileId]: ...
