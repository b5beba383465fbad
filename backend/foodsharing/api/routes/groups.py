"""Group Routes — group administration, membership, and effective permissions.

Invariants:
    - create requires CREATE_GROUP; update/delete/membership require EDIT_GROUP;
      reads require READ_GROUP
    - Membership add is idempotent (200 with added=false on repeat), remove of a
      missing pair is 200 with removed=false
    - Domain errors propagate to the global handlers (404/403/503)
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.api.dependencies import IdPath, get_authorization, require
from foodsharing.core.domain_types import GroupId, UserId
from foodsharing.core.errors import ValidationError
from foodsharing.core.permissions import Permission, from_names, to_names
from foodsharing.infrastructure.database import get_db
from foodsharing.schemas.groups import (
    EffectivePermissionsResponse, GroupCreate, GroupResponse, GroupUpdate,
    MembershipResponse,
)
from foodsharing.services.authorization import AuthorizationChecker
from foodsharing.services.groups import GroupRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["groups"])


def get_groups(db: AsyncSession = Depends(get_db)) -> GroupRepository:
    return GroupRepository(db)


@router.post(
    "/groups", response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_group(
    body: GroupCreate,
    actor_id: UserId = Depends(require(Permission.CREATE_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    group = await groups.create(body.name, body.permission_set())
    logger.info(
        f"User {actor_id} created group {group.id}",
        extra={"user_id": actor_id, "group_id": group.id},
    )
    return GroupResponse.from_model(group)


@router.get("/groups", response_model=list[GroupResponse])
async def list_groups(
    name: str | None = Query(None, max_length=200),
    permission: list[str] | None = Query(None),
    _: UserId = Depends(require(Permission.READ_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    """All groups, or those matching a LIKE pattern / granting any listed capability."""
    if name is not None:
        found = await groups.get_by_name(name)
    elif permission:
        try:
            mask = from_names(permission)
        except ValueError as e:
            raise ValidationError(str(e), "permission") from e
        found = await groups.get_by_permissions(mask)
    else:
        found = await groups.get_all()
    return [GroupResponse.from_model(g) for g in found]


@router.get("/groups/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: IdPath,
    _: UserId = Depends(require(Permission.READ_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    return GroupResponse.from_model(await groups.get_by_id(GroupId(group_id)))


@router.patch("/groups/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: IdPath,
    body: GroupUpdate,
    _: UserId = Depends(require(Permission.EDIT_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    group = await groups.update(
        GroupId(group_id), name=body.name, permissions=body.permission_set(),
    )
    return GroupResponse.from_model(group)


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: IdPath,
    _: UserId = Depends(require(Permission.EDIT_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    await groups.delete(GroupId(group_id))


@router.put(
    "/groups/{group_id}/members/{user_id}", response_model=MembershipResponse,
)
async def add_member(
    group_id: IdPath,
    user_id: IdPath,
    _: UserId = Depends(require(Permission.EDIT_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    added = await groups.add_member(GroupId(group_id), UserId(user_id))
    return MembershipResponse(group_id=group_id, user_id=user_id, added=added)


@router.delete(
    "/groups/{group_id}/members/{user_id}", response_model=MembershipResponse,
)
async def remove_member(
    group_id: IdPath,
    user_id: IdPath,
    _: UserId = Depends(require(Permission.EDIT_GROUP)),
    groups: GroupRepository = Depends(get_groups),
):
    removed = await groups.remove_member(GroupId(group_id), UserId(user_id))
    return MembershipResponse(group_id=group_id, user_id=user_id, removed=removed)


@router.get(
    "/users/{user_id}/permissions", response_model=EffectivePermissionsResponse,
)
async def get_effective_permissions(
    user_id: IdPath,
    _: UserId = Depends(require(Permission.READ_USER)),
    authz: AuthorizationChecker = Depends(get_authorization),
):
    effective = await authz.effective_permissions(UserId(user_id))
    return EffectivePermissionsResponse(
        user_id=user_id,
        permissions=to_names(effective),
        permission_bits=int(effective),
        is_admin=bool(effective & Permission.ADMIN),
    )
