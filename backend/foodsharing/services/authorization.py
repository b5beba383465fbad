"""Authorization Checker — effective permissions from group membership, and the mutation guard.

Invariants:
    - effective_permissions(u) == bitwise OR of every group u belongs to (empty set for no groups)
    - Membership is re-read on every call: changes only affect future checks
    - Unknown user -> ResourceNotFoundError; missing capability -> ForbiddenError (never conflated)
    - Read-only: no writes, no locks, safe to run concurrently without coordination

Design Decisions:
    - Depends on UserDirectory + MembershipStore protocols, not on AsyncSession:
      the bit logic is exercised with in-memory fakes, SQL with the real store
    - Stored integers decoded strictly: a row carrying unassigned bits is reported as
      a store failure rather than silently granting or dropping capabilities
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.core.domain_types import UserId
from foodsharing.core.errors import (
    DatabaseError, ErrorContext, ForbiddenError, ResourceNotFoundError,
)
from foodsharing.core.permissions import Permission, describe, has, union
from foodsharing.core.repository_protocols import MembershipStore, UserDirectory
from foodsharing.infrastructure.database import store_operation
from foodsharing.models.user import User

logger = logging.getLogger(__name__)


class SqlUserDirectory:
    """UserDirectory backed by the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists(self, user_id: UserId) -> bool:
        async with store_operation(
            self.db, "user_exists", ErrorContext(user_id=user_id),
        ):
            found = await self.db.scalar(
                select(User.id).where(User.id == user_id),
            )
        return found is not None


class AuthorizationChecker:
    """Resolves a user's effective permissions and answers capability queries."""

    def __init__(self, users: UserDirectory, memberships: MembershipStore):
        self.users = users
        self.memberships = memberships

    @classmethod
    def for_session(cls, db: AsyncSession) -> "AuthorizationChecker":
        """Wire the SQL-backed collaborators around one DB session."""
        from foodsharing.services.groups import GroupRepository

        return cls(SqlUserDirectory(db), GroupRepository(db))

    @staticmethod
    def has(permissions: Permission, capability: Permission) -> bool:
        return has(permissions, capability)

    async def effective_permissions(self, user_id: UserId) -> Permission:
        """Union of the user's group permissions. NotFound if the user does not exist."""
        context = ErrorContext(operation="effective_permissions", user_id=user_id)
        if not await self.users.exists(user_id):
            raise ResourceNotFoundError("User", str(user_id), context)
        try:
            sets = await self.memberships.user_group_permissions(user_id)
        except ValueError as e:
            raise DatabaseError(str(e), "effective_permissions", context) from e
        return union(sets)

    async def authorize(
        self, user_id: UserId, capability: Permission,
    ) -> Permission:
        """Return the effective set if it grants `capability`, else ForbiddenError."""
        effective = await self.effective_permissions(user_id)
        if has(effective, capability):
            return effective
        label = describe(capability)
        logger.warning(
            f"Denied {label} to user {user_id}",
            extra={"user_id": user_id, "capability": label, "error_code": "FORBIDDEN"},
        )
        raise ForbiddenError(
            user_id, label, ErrorContext(operation="authorize"),
        )
