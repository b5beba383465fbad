"""SQLAlchemy Declarative Base — shared base class, id type and timestamps for ORM models.

Invariants:
    - All models inherit from Base
    - Base is the single source of truth for table metadata
    - Surrogate keys are BIGINT in Postgres and INTEGER in SQLite (rowid autoincrement)
    - created_at is set on insert; updated_at stays NULL until a row is changed
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


ID = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all Foodsharing ORM models."""
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
