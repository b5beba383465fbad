"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Engine built by db/session.py, so the API and the upload worker pool alike
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py), never swallowed
    - store_operation() names the failing operation and entity; nothing is retried here

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
      (ADR: no global import side effects)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - store_operation() as a second, narrower boundary: services know the operation
      name and entity id, the session boundary does not
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from foodsharing.config import Settings
from foodsharing.core.errors import DatabaseError, ErrorContext
from foodsharing.db.session import create_session_factory

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(self, settings: Settings):
        self.engine, self._session_factory = create_session_factory(settings)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def store_operation(
    db: AsyncSession, operation: str, context: ErrorContext | None = None,
) -> AsyncGenerator[None, None]:
    """Roll back and re-raise any SQLAlchemy failure as DatabaseError with context."""
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        logger.error(
            f"Store failure during {operation}: {e}",
            extra={
                "operation": operation,
                "user_id": ctx.user_id,
                "group_id": ctx.group_id,
                "file_id": ctx.file_id,
                "error_code": "DATABASE_ERROR",
            },
        )
        raise DatabaseError(type(e).__name__, operation, ctx) from e


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(settings: Settings) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(settings)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
