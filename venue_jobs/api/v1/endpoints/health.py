from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from venue_jobs.api.deps import get_job_queue
from venue_jobs.core.config import settings
from venue_jobs.core.database import get_async_session
from venue_jobs.core.exceptions import PersistenceError
from venue_jobs.services.job_queue import JobQueue

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "venue-jobs",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }


@router.get("/detailed")
async def detailed_health_check(
    session: AsyncSession = Depends(get_async_session),
    queue: JobQueue = Depends(get_job_queue),
):
    """Detailed health check including the database and job counts."""
    health_status = {
        "status": "healthy",
        "service": "venue-jobs",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {}
    }

    # Database check
    try:
        await session.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {"status": "healthy", "message": "Database connection OK"}
    except Exception as e:
        health_status["checks"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"

    # Job queue check
    try:
        counts = await queue.get_stats()
        health_status["checks"]["jobs"] = {
            "status": "healthy",
            "counts": counts,
            "total": sum(counts.values()),
        }
    except PersistenceError as e:
        health_status["checks"]["jobs"] = {"status": "unhealthy", "error": e.message}
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
