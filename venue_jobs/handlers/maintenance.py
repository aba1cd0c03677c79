from typing import Any, Dict, TYPE_CHECKING

from venue_jobs.core.config import settings

if TYPE_CHECKING:
    from venue_jobs.services.job_queue import JobQueue


class MaintenanceHandlers:
    """Housekeeping jobs that act on the queue itself."""

    def __init__(self, job_queue: "JobQueue"):
        self.job_queue = job_queue

    async def cleanup_old_data(self, payload: Dict[str, Any]) -> Dict[str, int]:
        days_to_keep = int(payload.get("days_to_keep", settings.JOB_RETENTION_DAYS))
        if days_to_keep < 0:
            raise ValueError("days_to_keep must not be negative")
        deleted = await self.job_queue.delete_old_jobs(days_to_keep)
        return {"deleted": deleted, "days_to_keep": days_to_keep}
