from .job_queue import JobQueue

__all__ = [
    "JobQueue",
]
