"""API Dependencies — acting-user resolution and the capability guard.

Invariants:
    - Every mutating route depends on require(<capability>) or an explicit owner check
    - Missing/invalid X-User-Id -> 401 (non-ASCII digits, zero and ids beyond BIGINT included); unknown user -> 404; missing capability -> 403
    - The guard re-reads membership per request (no caching of effective permissions)

Design Decisions:
    - X-User-Id header stands in for the session layer, which lives outside this package
    - require() returns the actor id so routes need one dependency, not two
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from foodsharing.core.domain_types import MAX_ID, UserId
from foodsharing.core.permissions import Permission
from foodsharing.infrastructure.database import get_db
from foodsharing.services.authorization import AuthorizationChecker

_MAX_ID_DIGITS = len(str(MAX_ID))

# Path id bounded to the BIGINT range so out-of-range ids are a 400, not a store error
IdPath = Annotated[int, Path(ge=1, le=MAX_ID)]


async def get_actor_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> UserId:
    """Acting user from the X-User-Id header (ASCII digits, 1..MAX_ID)."""
    if (
        x_user_id is None
        or not (x_user_id.isascii() and x_user_id.isdigit())
        or len(x_user_id) > _MAX_ID_DIGITS
        or not 1 <= int(x_user_id) <= MAX_ID
    ):
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header with a numeric user id is required",
        )
    return UserId(int(x_user_id))


def get_authorization(db: AsyncSession = Depends(get_db)) -> AuthorizationChecker:
    return AuthorizationChecker.for_session(db)


def require(capability: Permission):
    """Dependency factory: 403 unless the actor's groups grant `capability`."""

    async def guard(
        actor_id: UserId = Depends(get_actor_id),
        authz: AuthorizationChecker = Depends(get_authorization),
    ) -> UserId:
        await authz.authorize(actor_id, capability)
        return actor_id

    return guard
