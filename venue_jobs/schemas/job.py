from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID
from pydantic import BaseModel, Field, validator

from venue_jobs.core.config import settings
from venue_jobs.models.job import JobStatus, JobType
from .common import BaseResponse


class JobOptions(BaseModel):
    """Options accepted by enqueue."""

    priority: int = Field(default_factory=lambda: settings.JOB_DEFAULT_PRIORITY, description="Higher runs first")
    max_attempts: int = Field(
        default_factory=lambda: settings.JOB_DEFAULT_MAX_ATTEMPTS,
        ge=1,
        alias="maxAttempts",
        description="Attempts allowed before the job fails",
    )
    delay: int = Field(default=0, ge=0, description="Milliseconds before the job becomes eligible")
    unique: Optional[str] = Field(default=None, description="De-duplication key")

    class Config:
        extra = "forbid"
        populate_by_name = True

    @validator('unique')
    def validate_unique(cls, v):
        if v is not None and not v.strip():
            raise ValueError('unique key must not be blank')
        return v


class JobResponse(BaseModel):
    """Serialized job row."""

    id: UUID
    type: str
    payload: Dict[str, Any]
    status: str
    priority: int
    attempts: int
    max_attempts: int
    scheduled_for: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    result: Optional[Any] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QueueResult(BaseModel):
    """Structured outcome of a queue API call; errors are reported, not raised."""

    success: bool
    job_id: Optional[UUID] = None
    job: Optional[JobResponse] = None
    deduplicated: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, job=None, job_id: Optional[UUID] = None, deduplicated: bool = False) -> "QueueResult":
        return cls(
            success=True,
            job_id=job_id or (job.id if job is not None else None),
            job=JobResponse.model_validate(job) if job is not None else None,
            deduplicated=deduplicated,
        )

    @classmethod
    def from_error(cls, exc, job_id: Optional[UUID] = None) -> "QueueResult":
        return cls(
            success=False,
            job_id=job_id,
            error=getattr(exc, "message", None) or str(exc),
            error_code=getattr(exc, "code", "job_queue_error"),
        )


class JobOutcome(str, Enum):
    """Per-job result of an executor pass."""

    COMPLETED = "completed"
    RETRIED = "retried"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERRORED = "errored"


class BatchResult(BaseModel):
    """Counts for one process_jobs invocation."""

    fetched: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0
    errored: int = 0

    def record(self, outcome: "JobOutcome") -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


# API request/response bodies

class EnqueueJobRequest(BaseModel):
    """Request body for enqueueing a job over HTTP."""

    type: JobType
    payload: Dict[str, Any] = Field(default_factory=dict)
    options: Optional[JobOptions] = None


class JobStatusUpdateRequest(BaseModel):
    status: JobStatus
    result: Optional[Any] = None
    error: Optional[str] = None


class ProcessJobsRequest(BaseModel):
    limit: int = Field(default_factory=lambda: settings.JOB_BATCH_SIZE, ge=1, le=100)


class CleanupRequest(BaseModel):
    days_to_keep: int = Field(default_factory=lambda: settings.JOB_RETENTION_DAYS, ge=0)


class QueueResultResponse(BaseResponse):
    """HTTP wrapper around QueueResult."""

    job_id: Optional[UUID] = None
    job: Optional[JobResponse] = None
    deduplicated: bool = False


class BatchResultResponse(BaseResponse):
    batch: BatchResult


class CleanupResponse(BaseResponse):
    deleted: int
