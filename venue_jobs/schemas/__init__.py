from .common import BaseResponse
from .job import (
    JobOptions, JobResponse, QueueResult, JobOutcome, BatchResult,
    EnqueueJobRequest, JobStatusUpdateRequest, ProcessJobsRequest, CleanupRequest,
    QueueResultResponse, BatchResultResponse, CleanupResponse
)

__all__ = [
    # Common
    "BaseResponse",

    # Job queue
    "JobOptions", "JobResponse", "QueueResult", "JobOutcome", "BatchResult",

    # API
    "EnqueueJobRequest", "JobStatusUpdateRequest", "ProcessJobsRequest", "CleanupRequest",
    "QueueResultResponse", "BatchResultResponse", "CleanupResponse",
]
