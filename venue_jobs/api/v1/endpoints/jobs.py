from typing import Any, Dict
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status

from venue_jobs.api.deps import get_job_queue
from venue_jobs.core.auth import verify_service_token
from venue_jobs.core.config import settings
from venue_jobs.core.exceptions import NotFoundError, PersistenceError, ValidationError
from venue_jobs.schemas.job import (
    BatchResultResponse,
    CleanupRequest,
    CleanupResponse,
    EnqueueJobRequest,
    JobStatusUpdateRequest,
    ProcessJobsRequest,
    QueueResult,
    QueueResultResponse,
)
from venue_jobs.services.job_queue import JobQueue

router = APIRouter()

ERROR_STATUS_CODES = {
    ValidationError.code: status.HTTP_400_BAD_REQUEST,
    NotFoundError.code: status.HTTP_404_NOT_FOUND,
    PersistenceError.code: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _to_response(result: QueueResult, message: str = None) -> QueueResultResponse:
    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(result.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=result.error,
        )
    return QueueResultResponse(
        message=message,
        job_id=result.job_id,
        job=result.job,
        deduplicated=result.deduplicated,
    )


@router.post("", response_model=QueueResultResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_job(
    request: EnqueueJobRequest,
    service: Dict[str, Any] = Depends(verify_service_token),
    queue: JobQueue = Depends(get_job_queue),
):
    """
    Enqueue a background job.

    - **type**: job type
    - **payload**: handler-specific data
    - **options**: priority, maxAttempts, delay (ms), unique
    """
    result = await queue.enqueue(request.type, request.payload, request.options)
    message = "Existing job returned" if result.deduplicated else "Job enqueued"
    return _to_response(result, message)


@router.post("/process", response_model=BatchResultResponse)
async def process_jobs(
    request: ProcessJobsRequest = None,
    service: Dict[str, Any] = Depends(verify_service_token),
    queue: JobQueue = Depends(get_job_queue),
):
    """Run one executor pass now (manual or cron trigger)."""
    limit = request.limit if request else None
    batch = await queue.process_jobs(limit)
    return BatchResultResponse(message=f"Processed {batch.fetched} jobs", batch=batch)


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_jobs(
    request: CleanupRequest = None,
    service: Dict[str, Any] = Depends(verify_service_token),
    queue: JobQueue = Depends(get_job_queue),
):
    """Delete terminal jobs older than the retention window."""
    days_to_keep = request.days_to_keep if request else settings.JOB_RETENTION_DAYS
    try:
        deleted = await queue.delete_old_jobs(days_to_keep)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    return CleanupResponse(message=f"Deleted {deleted} jobs", deleted=deleted)


@router.get("/{job_id}", response_model=QueueResultResponse)
async def get_job(
    job_id: UUID,
    service: Dict[str, Any] = Depends(verify_service_token),
    queue: JobQueue = Depends(get_job_queue),
):
    """Get a job by ID."""
    return _to_response(await queue.get_job(job_id))


@router.post("/{job_id}/cancel", response_model=QueueResultResponse)
async def cancel_job(
    job_id: UUID,
    service: Dict[str, Any] = Depends(verify_service_token),
    queue: JobQueue = Depends(get_job_queue),
):
    """Cancel a pending job."""
    return _to_response(await queue.cancel_job(job_id), "Job cancelled")


@router.post("/{job_id}/status", response_model=QueueResultResponse)
async def update_job_status(
    job_id: UUID,
    request: JobStatusUpdateRequest,
    service: Dict[str, Any] = Depends(verify_service_token),
    queue: JobQueue = Depends(get_job_queue),
):
    """Move a job to a new status by hand."""
    result = await queue.update_job_status(job_id, request.status, request.result, request.error)
    return _to_response(result, "Job status updated")
