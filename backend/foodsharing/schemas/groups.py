"""Group Schemas — permission sets cross the API boundary as capability names.

Invariants:
    - Capability names validated against Permission members (unknown names rejected)
    - GroupResponse carries both the names and the raw bit-vector
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from foodsharing.core.permissions import Permission, from_names, from_stored, to_names


def _validate_names(names: list[str]) -> list[str]:
    from_names(names)
    return [n.upper() for n in names]


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    permissions: list[str] = Field(default_factory=list)

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v: list[str]) -> list[str]:
        return _validate_names(v)

    def permission_set(self) -> Permission:
        return from_names(self.permissions)


class GroupUpdate(BaseModel):
    """Replace name and/or permissions; omitted fields are kept."""
    name: str | None = Field(None, min_length=1, max_length=200)
    permissions: list[str] | None = None

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _validate_names(v)

    def permission_set(self) -> Permission | None:
        return None if self.permissions is None else from_names(self.permissions)


class GroupResponse(BaseModel):
    id: int
    name: str
    permissions: list[str]
    permission_bits: int
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, group) -> "GroupResponse":
        return cls(
            id=group.id,
            name=group.name,
            permissions=to_names(from_stored(group.permissions)),
            permission_bits=group.permissions,
            created_at=group.created_at,
            updated_at=group.updated_at,
        )


class MembershipResponse(BaseModel):
    group_id: int
    user_id: int
    added: bool | None = None
    removed: bool | None = None


class EffectivePermissionsResponse(BaseModel):
    user_id: int
    permissions: list[str]
    permission_bits: int
    is_admin: bool
