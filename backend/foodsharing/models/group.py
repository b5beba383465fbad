"""Group ORM — named bundle of a permission bit-vector, plus the membership table.

Invariants:
    - permissions is a signed 64-bit integer holding a Permission bit-vector
    - (user_id, group_id) is the membership primary key: a pair exists at most once
    - Deleting a group deletes its membership rows (ON DELETE CASCADE + explicit delete)
    - updated_at is NULL until the first update

Design Decisions:
    - Membership as a plain Table, not a mapped class: it has no payload beyond the pair
    - permissions stored raw (BigInteger): the store can filter with `permissions & mask`
"""

from sqlalchemy import (
    BigInteger, String, Column, ForeignKey, Table,
)
from sqlalchemy.orm import Mapped, mapped_column

from foodsharing.db.base import Base, ID, TimestampMixin


users_to_groups = Table(
    "users_to_groups",
    Base.metadata,
    Column(
        "user_id", ID,
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    ),
    Column(
        "group_id", ID,
        ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True,
    ),
)


class Group(TimestampMixin, Base):
    """Group entity — grants its permissions to every member."""
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(ID, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    permissions: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0,
    )
