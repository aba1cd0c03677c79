import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from .celery_app import celery_app
from venue_jobs.bootstrap import build_job_queue
from venue_jobs.core.database import worker_session_factory
from venue_jobs.core.logging import get_logger
from venue_jobs.services.job_queue import JobQueue

logger = get_logger(__name__)


def _run(coro_fn: Callable[[], Awaitable[Any]]) -> Any:
    try:
        return asyncio.run(coro_fn())
    except RuntimeError:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            return loop.run_until_complete(coro_fn())
        finally:
            loop.close()


async def _with_queue(action: Callable[[JobQueue], Awaitable[Any]]) -> Any:
    async with worker_session_factory() as session_factory:
        queue = build_job_queue(session_factory)
        return await action(queue)


async def _process_jobs_once(limit: Optional[int] = None) -> Dict[str, int]:
    batch = await _with_queue(lambda queue: queue.process_jobs(limit))
    return batch.model_dump()


async def _cleanup_old_jobs_once(days_to_keep: Optional[int] = None) -> Dict[str, int]:
    deleted = await _with_queue(lambda queue: queue.cleanup_old_jobs(days_to_keep))
    return {"deleted": deleted}


@celery_app.task(name="venue_jobs.workers.tasks.process_jobs", ignore_result=True)
def process_jobs(limit: Optional[int] = None):
    """Run one executor pass over eligible jobs."""
    result = _run(lambda: _process_jobs_once(limit))
    if result["fetched"]:
        logger.info("Job processing pass finished", **result)
    return result


@celery_app.task(name="venue_jobs.workers.tasks.cleanup_old_jobs", ignore_result=True)
def cleanup_old_jobs(days_to_keep: Optional[int] = None):
    """Daily retention sweep of terminal jobs."""
    result = _run(lambda: _cleanup_old_jobs_once(days_to_keep))
    logger.info("Job cleanup finished", **result)
    return result
