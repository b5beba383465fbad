"""Worker Sessions — engine and session factory for processes without a FastAPI lifespan.

Invariants:
    - The caller owns the returned engine and disposes it on shutdown
    - Pool sizing comes from Settings; DatabaseSessionManager builds its engine here too
    - SQLite URLs (tests) get the driver defaults, no pool sizing

Design Decisions:
    - Separate from infrastructure/database.py: the upload worker needs a session per
      claim, not the request-scoped get_db dependency
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)

from foodsharing.config import Settings


def create_session_factory(
    settings: Settings,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Engine plus session factory for the configured database."""
    options = {}
    if not settings.database_url.startswith("sqlite"):
        options = {
            "pool_size": settings.database_pool_size,
            "max_overflow": settings.database_max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
    engine = create_async_engine(settings.database_url, echo=False, **options)
    return engine, async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )
