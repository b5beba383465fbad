"""Foodsharing API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map FoodsharingError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - The upload worker is a separate process (services/upload_worker.py), never
      started from the API lifespan
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import foodsharing.infrastructure.database as database
from foodsharing.api.error_handlers import register_error_handlers
from foodsharing.infrastructure.observability import setup_logging
from foodsharing.config import get_settings
from foodsharing.api.routes import files, groups, health, uploads

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(settings)
    logger.info("Foodsharing API started")
    yield
    if database.db_manager:
        await database.db_manager.dispose()
    logger.info("Foodsharing API shutting down")


app = FastAPI(
    title="Foodsharing API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(groups.router)
app.include_router(files.router)
app.include_router(uploads.router)

register_error_handlers(app)
