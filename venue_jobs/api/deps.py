from fastapi import Request

from venue_jobs.services.job_queue import JobQueue


def get_job_queue(request: Request) -> JobQueue:
    """JobQueue built at startup and stored on the application."""
    return request.app.state.job_queue
