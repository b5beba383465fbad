"""Database Infrastructure — async session factory and SQLAlchemy Base.

Invariants:
    - One engine per process: init_db for the API, create_session_factory for the worker
    - All sessions are async (AsyncSession)

Design Decisions:
    - asyncpg driver for PostgreSQL, aiosqlite for tests
"""
