"""Permission Sets — capability bit-vector and pure authorization predicates.

Invariants:
    - Each capability owns exactly one bit; bits are disjoint and never reused
    - New capabilities are appended with the next free bit (persisted values never shift)
    - ADMIN short-circuits every check to "allowed"
    - Effective permissions = bitwise OR over group permissions (associative, commutative)
    - At most MAX_CAPABILITY_BITS capabilities: the column is a signed 64-bit integer

Design Decisions:
    - IntFlag over a set of strings: O(1) checks, direct storage as BIGINT, and
      "does X imply Y" is a mask test
    - Pure functions only: membership resolution (IO) lives in services/authorization.py
"""

from collections.abc import Iterable
from enum import IntFlag
from functools import reduce
import operator


MAX_CAPABILITY_BITS: int = 63


class Permission(IntFlag):
    """One bit per capability. Append only."""
    ADMIN = 1 << 0

    CREATE_USER = 1 << 1
    READ_USER = 1 << 2
    EDIT_USER = 1 << 3

    CREATE_ACT = 1 << 4
    READ_ACT = 1 << 5
    EDIT_ACT = 1 << 6

    ADD_CITY = 1 << 7
    READ_CITY = 1 << 8
    EDIT_CITY = 1 << 9

    ADD_COMPANY = 1 << 10
    READ_COMPANY = 1 << 11
    EDIT_COMPANY = 1 << 12

    CREATE_GROUP = 1 << 13
    READ_GROUP = 1 << 14
    EDIT_GROUP = 1 << 15

    MANAGE_UPLOADS = 1 << 16


NO_PERMISSIONS = Permission(0)

ALL_CAPABILITIES: tuple[Permission, ...] = tuple(Permission)

ASSIGNED_MASK: int = reduce(operator.or_, (int(p) for p in ALL_CAPABILITIES), 0)

if ASSIGNED_MASK >= 1 << MAX_CAPABILITY_BITS:
    raise RuntimeError(
        f"Permission defines bits beyond the {MAX_CAPABILITY_BITS}-bit storage width",
    )


def has(permissions: Permission, capability: Permission) -> bool:
    """True iff ADMIN is set or every bit of `capability` is set."""
    if permissions & Permission.ADMIN:
        return True
    return (permissions & capability) == capability


def union(sets: Iterable[Permission]) -> Permission:
    """Bitwise OR of every set; the empty iterable yields NO_PERMISSIONS."""
    return reduce(operator.or_, sets, NO_PERMISSIONS)


def from_stored(value: int) -> Permission:
    """Decode a persisted integer, rejecting bits no capability owns."""
    if value < 0 or value & ~ASSIGNED_MASK:
        raise ValueError(f"Stored permissions {value:#x} carry unassigned bits")
    return Permission(value)


def to_names(permissions: Permission) -> list[str]:
    """Capability names in bit order, e.g. ["READ_ACT", "READ_COMPANY"]."""
    return [p.name for p in ALL_CAPABILITIES if permissions & p]


def from_names(names: Iterable[str]) -> Permission:
    """Inverse of to_names. Unknown names raise ValueError."""
    result = NO_PERMISSIONS
    for name in names:
        try:
            result |= Permission[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown capability: {name}") from None
    return result


def describe(capability: Permission) -> str:
    """Human-readable label for logs and error messages."""
    names = to_names(capability)
    return "|".join(names) if names else "NONE"
