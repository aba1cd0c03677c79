from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_

from venue_jobs.models.job import Job, JobStatus, TERMINAL_STATUSES
from .base_repository import BaseRepository


class JobRepository(BaseRepository[Job]):
    """
    Durable store for Job rows.

    Every state change is a single-row conditional update keyed by id and
    guarded by the status the caller expects, so concurrent workers cannot
    both move the same job.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Job, session)

    async def find_pending_by_unique_key(self, job_type: str, unique_key: str) -> Optional[Job]:
        """Pending job of ``job_type`` whose payload carries ``unique_key``."""
        try:
            query = (
                select(Job)
                .where(
                    and_(
                        Job.type == job_type,
                        Job.status == JobStatus.PENDING.value,
                        Job.payload["unique_key"].as_string() == unique_key,
                    )
                )
                .order_by(Job.created_at.asc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error finding pending job by unique key {unique_key}: {e}")
            raise

    async def get_eligible(self, now: datetime, limit: int) -> List[Job]:
        """Pending jobs due by ``now``; highest priority first, oldest first within a priority."""
        try:
            query = (
                select(Job)
                .where(
                    and_(
                        Job.status == JobStatus.PENDING.value,
                        Job.scheduled_for <= now,
                    )
                )
                .order_by(Job.priority.desc(), Job.created_at.asc(), Job.id.asc())
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            self.logger.error(f"Error getting eligible jobs: {e}")
            raise

    async def transition(self, job_id: UUID, from_status: str, values: Dict[str, Any]) -> bool:
        """
        Apply ``values`` only if the job is still in ``from_status``.

        Returns False when the row is missing or another writer moved it first.
        """
        try:
            query = (
                update(Job)
                .where(and_(Job.id == job_id, Job.status == from_status))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(query)
            return result.rowcount == 1
        except Exception as e:
            self.logger.error(f"Error transitioning job {job_id} from {from_status}: {e}")
            raise

    async def claim(self, job_id: UUID, now: datetime) -> Optional[Job]:
        """Move a pending job to processing and count the attempt; None if the claim was lost."""
        claimed = await self.transition(
            job_id,
            JobStatus.PENDING.value,
            {
                "status": JobStatus.PROCESSING.value,
                "started_at": now,
                "attempts": Job.attempts + 1,
                "updated_at": now,
            },
        )
        if not claimed:
            return None
        return await self.get_by_id(job_id)

    async def delete_terminal_before(self, cutoff: datetime) -> int:
        """Delete completed/failed/cancelled jobs created before ``cutoff``."""
        try:
            query = (
                delete(Job)
                .where(
                    and_(
                        Job.status.in_(sorted(TERMINAL_STATUSES)),
                        Job.created_at < cutoff,
                    )
                )
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(query)
            return result.rowcount or 0
        except Exception as e:
            self.logger.error(f"Error deleting terminal jobs before {cutoff}: {e}")
            raise

    async def count_by_status(self) -> Dict[str, int]:
        """Job counts per status; statuses with no rows report 0."""
        try:
            query = select(Job.status, func.count(Job.id)).group_by(Job.status)
            result = await self.session.execute(query)
            counts = {status.value: 0 for status in JobStatus}
            for status, total in result.all():
                counts[status] = total
            return counts
        except Exception as e:
            self.logger.error(f"Error counting jobs by status: {e}")
            raise
