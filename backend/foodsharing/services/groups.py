"""Group Repository — group CRUD and (user, group) membership persistence.

Invariants:
    - add_member is idempotent: an existing pair is left alone (returns False), never duplicated
    - remove_member of a missing pair is a no-op (returns False)
    - add_member on a missing user or group -> ResourceNotFoundError
    - delete removes every membership row of the group in the same transaction
    - update/delete of a missing group -> ResourceNotFoundError
    - Every store failure surfaces as DatabaseError naming the operation and ids

Design Decisions:
    - INSERT ... ON CONFLICT DO NOTHING via the dialect's own insert(): one statement,
      no read-then-write window between two concurrent adds of the same pair
    - Membership rows deleted explicitly before the group: SQLite does not enforce
      ON DELETE CASCADE unless foreign keys are switched on per connection
    - No authorization here: callers run AuthorizationChecker.authorize first
"""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.core.domain_types import GroupId, UserId
from foodsharing.core.errors import DatabaseError, ErrorContext, ResourceNotFoundError
from foodsharing.core.permissions import Permission, from_stored
from foodsharing.db.base import utcnow
from foodsharing.infrastructure.database import store_operation
from foodsharing.models.group import Group, users_to_groups
from foodsharing.models.user import User

logger = logging.getLogger(__name__)


def _insert_ignoring_duplicates(
    dialect_name: str, values: dict, context: ErrorContext | None = None,
):
    """Dialect-specific INSERT that skips rows violating the membership primary key."""
    if dialect_name == "postgresql":
        stmt = postgresql.insert(users_to_groups).values(**values)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(users_to_groups).values(**values)
    else:
        raise DatabaseError(f"unsupported dialect {dialect_name!r}", "add_member", context)
    return stmt.on_conflict_do_nothing(
        index_elements=[users_to_groups.c.user_id, users_to_groups.c.group_id],
    )


class GroupRepository:
    """Persistence for groups and memberships."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Groups ─────────────────────────────────────────────────

    async def create(self, name: str, permissions: Permission) -> Group:
        group = Group(name=name, permissions=int(permissions))
        async with store_operation(self.db, "create_group"):
            self.db.add(group)
            await self.db.commit()
            await self.db.refresh(group)
        logger.info(
            f"Group '{name}' created", extra={"group_id": group.id},
        )
        return group

    async def update(
        self,
        group_id: GroupId,
        name: str | None = None,
        permissions: Permission | None = None,
    ) -> Group:
        """Replace name and/or permissions. Missing group -> ResourceNotFoundError."""
        context = ErrorContext(group_id=group_id)
        values: dict = {"updated_at": utcnow()}
        if name is not None:
            values["name"] = name
        if permissions is not None:
            values["permissions"] = int(permissions)
        async with store_operation(self.db, "update_group", context):
            result = await self.db.execute(
                update(Group).where(Group.id == group_id).values(**values),
            )
            if result.rowcount != 1:
                await self.db.rollback()
                raise ResourceNotFoundError("Group", str(group_id), context)
            await self.db.commit()
        return await self.get_by_id(group_id)

    async def delete(self, group_id: GroupId) -> None:
        """Delete the group and its membership rows atomically."""
        context = ErrorContext(group_id=group_id)
        async with store_operation(self.db, "delete_group", context):
            await self.db.execute(
                delete(users_to_groups).where(users_to_groups.c.group_id == group_id),
            )
            result = await self.db.execute(
                delete(Group).where(Group.id == group_id),
            )
            if result.rowcount != 1:
                await self.db.rollback()
                raise ResourceNotFoundError("Group", str(group_id), context)
            await self.db.commit()
        logger.info(f"Group {group_id} deleted", extra={"group_id": group_id})

    async def get_by_id(self, group_id: GroupId) -> Group:
        context = ErrorContext(group_id=group_id)
        async with store_operation(self.db, "get_group", context):
            group = await self.db.scalar(
                select(Group)
                .where(Group.id == group_id)
                .execution_options(populate_existing=True),
            )
        if group is None:
            raise ResourceNotFoundError("Group", str(group_id), context)
        return group

    async def get_by_name(self, pattern: str) -> list[Group]:
        """Groups whose name matches a SQL LIKE pattern."""
        async with store_operation(self.db, "get_groups_by_name"):
            result = await self.db.scalars(
                select(Group).where(Group.name.like(pattern)).order_by(Group.id),
            )
            return list(result.all())

    async def get_by_permissions(self, mask: Permission) -> list[Group]:
        """Groups granting at least one bit of `mask`."""
        async with store_operation(self.db, "get_groups_by_permissions"):
            result = await self.db.scalars(
                select(Group)
                .where(Group.permissions.op("&")(int(mask)) != 0)
                .order_by(Group.id),
            )
            return list(result.all())

    async def get_all(self) -> list[Group]:
        async with store_operation(self.db, "get_all_groups"):
            result = await self.db.scalars(select(Group).order_by(Group.id))
            return list(result.all())

    # ─── Membership ─────────────────────────────────────────────

    async def add_member(self, group_id: GroupId, user_id: UserId) -> bool:
        """Add the pair; True if inserted, False if it already existed."""
        context = ErrorContext(group_id=group_id, user_id=user_id)
        async with store_operation(self.db, "add_member", context):
            await self._require_exists(User, user_id, "User", context)
            await self._require_exists(Group, group_id, "Group", context)
            stmt = _insert_ignoring_duplicates(
                self.db.get_bind().dialect.name,
                {"user_id": user_id, "group_id": group_id},
                context,
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
        inserted = result.rowcount == 1
        if inserted:
            logger.info(
                f"User {user_id} added to group {group_id}",
                extra={"user_id": user_id, "group_id": group_id},
            )
        return inserted

    async def remove_member(self, group_id: GroupId, user_id: UserId) -> bool:
        """Remove the pair; False (no error) when it did not exist."""
        context = ErrorContext(group_id=group_id, user_id=user_id)
        async with store_operation(self.db, "remove_member", context):
            result = await self.db.execute(
                delete(users_to_groups).where(
                    users_to_groups.c.user_id == user_id,
                    users_to_groups.c.group_id == group_id,
                ),
            )
            await self.db.commit()
        return result.rowcount == 1

    async def get_user_groups(self, user_id: UserId) -> list[Group]:
        async with store_operation(
            self.db, "get_user_groups", ErrorContext(user_id=user_id),
        ):
            result = await self.db.scalars(
                select(Group)
                .join(users_to_groups, users_to_groups.c.group_id == Group.id)
                .where(users_to_groups.c.user_id == user_id)
                .order_by(Group.id),
            )
            return list(result.all())

    async def user_group_permissions(self, user_id: UserId) -> list[Permission]:
        """Permission set of every group the user belongs to."""
        async with store_operation(
            self.db, "user_group_permissions", ErrorContext(user_id=user_id),
        ):
            result = await self.db.scalars(
                select(Group.permissions)
                .join(users_to_groups, users_to_groups.c.group_id == Group.id)
                .where(users_to_groups.c.user_id == user_id),
            )
            stored = list(result.all())
        return [from_stored(value) for value in stored]

    async def member_count(self, group_id: GroupId) -> int:
        async with store_operation(
            self.db, "member_count", ErrorContext(group_id=group_id),
        ):
            return await self.db.scalar(
                select(func.count())
                .select_from(users_to_groups)
                .where(users_to_groups.c.group_id == group_id),
            )

    async def _require_exists(
        self, model, entity_id: int, label: str, context: ErrorContext,
    ) -> None:
        found = await self.db.scalar(select(model.id).where(model.id == entity_id))
        if found is None:
            raise ResourceNotFoundError(label, str(entity_id), context)
