"""User ORM — minimal identity row referenced by memberships and files.

Invariants:
    - id is an integer serial primary key
    - email is unique

Design Decisions:
    - Only the columns the permission and upload core read; profile fields and
      user CRUD belong to the user repository, not this package
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from foodsharing.db.base import Base, ID, TimestampMixin


class User(TimestampMixin, Base):
    """User entity — owner of files and member of groups."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    surname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
