"""Health & Readiness Probes — liveness, readiness and upload backlog.

Invariants:
    - GET /api/v1/health/ answers 200 while the process runs
    - GET /api/v1/health/ready answers 503 when the database cannot be reached
    - A ready response carries the upload backlog (waiting + claimed file counts)

Design Decisions:
    - Backlog is read through FileRepository so the probe and /uploads/stats agree
    - db_manager looked up at call time: tests and lifespan swap it after import
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

import foodsharing.infrastructure.database as database
from foodsharing.core.domain_types import FileStatus
from foodsharing.services.file_store import FileRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])

SERVICE_NAME = "foodsharing-api"


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check():
    """Readiness: database reachable, plus how much work the upload worker has."""
    manager = database.db_manager
    if manager is None or not await manager.health_check():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    async with manager.session() as db:
        counts = await FileRepository(db).count_by_status()
    return {
        "status": "ready",
        "checks": {"database": "healthy"},
        "uploads": {
            "waiting": counts[FileStatus.UPLOADED_BY_CLIENT],
            "claimed": counts[FileStatus.STORAGE_UPLOAD_IN_PROGRESS],
        },
    }
