import asyncio
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from venue_jobs.core.config import settings
from venue_jobs.core.database import STORE_ERRORS
from venue_jobs.core.exceptions import (
    JobQueueError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from venue_jobs.core.logging import ContextLogger, get_logger
from venue_jobs.core.queue_policies import DEFAULT_POLICY, RetryPolicy
from venue_jobs.handlers.registry import HandlerRegistry
from venue_jobs.models.base import utcnow
from venue_jobs.models.job import Job, JobStatus, JobType
from venue_jobs.repositories.job_repository import JobRepository
from venue_jobs.schemas.job import BatchResult, JobOptions, JobOutcome, QueueResult


class JobQueue:
    """
    Database-backed job queue.

    Jobs are rows in ``jobs``. Callers enqueue work; an external trigger
    (Celery beat, the HTTP endpoint, or a manual call) runs
    ``process_jobs`` which claims eligible rows and dispatches them to the
    handler registered for their type.

    Enqueue, lookup and cancel report failures through ``QueueResult``
    instead of raising. Handler failures never leave ``process_jobs``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: HandlerRegistry,
        retry_policy: RetryPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = utcnow,
        repository_factory: Callable[[AsyncSession], JobRepository] = JobRepository,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.retry_policy = retry_policy
        self.clock = clock
        self.repository_factory = repository_factory
        self.logger = get_logger(self.__class__.__name__)

    # Enqueue

    async def enqueue(
        self,
        job_type: Union[JobType, str],
        payload: Optional[Dict[str, Any]] = None,
        options: Union[JobOptions, Dict[str, Any], None] = None,
    ) -> QueueResult:
        """
        Add a job to the queue.

        With ``options.unique`` set, an existing pending job of the same type
        carrying that key is returned instead of inserting a duplicate. The
        partial unique index on pending jobs settles concurrent enqueues: the
        losing insert is rolled back and resolved to the winner's id.
        """
        try:
            job_type = self._validate_type(job_type)
            opts = self._parse_options(options)
            if payload is None:
                payload = {}
            if not isinstance(payload, dict):
                raise ValidationError("Job payload must be a mapping")

            stored_payload = {**payload, "unique_key": opts.unique} if opts.unique else dict(payload)
            now = self.clock()

            async with self.session_factory() as session:
                repo = self.repository_factory(session)

                if opts.unique:
                    existing = await repo.find_pending_by_unique_key(job_type.value, opts.unique)
                    if existing:
                        return self._deduplicated(existing, job_type, opts.unique)

                try:
                    job = await repo.create({
                        "type": job_type.value,
                        "payload": stored_payload,
                        "status": JobStatus.PENDING.value,
                        "priority": opts.priority,
                        "attempts": 0,
                        "max_attempts": opts.max_attempts,
                        "scheduled_for": now + timedelta(milliseconds=opts.delay),
                    })
                    await session.commit()
                except IntegrityError:
                    if not opts.unique:
                        raise
                    # Another enqueue inserted the same key after our lookup
                    await session.rollback()
                    existing = await repo.find_pending_by_unique_key(job_type.value, opts.unique)
                    if existing is None:
                        raise
                    return self._deduplicated(existing, job_type, opts.unique)

            self.logger.info(
                f"Job enqueued: {job_type.value}",
                job_id=str(job.id),
                job_type=job_type.value,
                priority=opts.priority,
                delay_ms=opts.delay,
            )
            return QueueResult.ok(job_id=job.id)

        except JobQueueError as e:
            self.logger.error("Failed to enqueue job", job_type=str(job_type), error=e.message, code=e.code)
            return QueueResult.from_error(e)
        except STORE_ERRORS as e:
            error = PersistenceError(f"Failed to enqueue job: {e}", cause=e)
            self.logger.error("Failed to enqueue job", job_type=str(job_type), error=str(e))
            return QueueResult.from_error(error)

    def _deduplicated(self, existing: Job, job_type: JobType, unique_key: str) -> QueueResult:
        self.logger.info(
            f"Job with unique key {unique_key} already exists",
            job_id=str(existing.id),
            job_type=job_type.value,
        )
        return QueueResult.ok(job_id=existing.id, deduplicated=True)

    # Lookup

    async def get_job(self, job_id: UUID) -> QueueResult:
        """Get a job by ID."""
        try:
            async with self.session_factory() as session:
                job = await self.repository_factory(session).get_by_id(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            return QueueResult.ok(job=job)
        except JobQueueError as e:
            return QueueResult.from_error(e, job_id=job_id)
        except STORE_ERRORS as e:
            self.logger.error("Failed to get job", job_id=str(job_id), error=str(e))
            return QueueResult.from_error(PersistenceError(f"Failed to get job: {e}", cause=e), job_id=job_id)

    async def next_eligible_jobs(self, limit: int) -> List[Job]:
        """Pending jobs due now, highest priority first and oldest first within a priority."""
        try:
            async with self.session_factory() as session:
                return await self.repository_factory(session).get_eligible(self.clock(), limit)
        except STORE_ERRORS as e:
            self.logger.error("Failed to fetch pending jobs", error=str(e))
            return []

    async def get_next_pending_job(self) -> Optional[Job]:
        jobs = await self.next_eligible_jobs(1)
        return jobs[0] if jobs else None

    async def get_stats(self) -> Dict[str, int]:
        """Job counts per status. Raises PersistenceError."""
        try:
            async with self.session_factory() as session:
                return await self.repository_factory(session).count_by_status()
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to count jobs: {e}", cause=e) from e

    # Execution

    async def process_jobs(self, limit: Optional[int] = None) -> BatchResult:
        """
        Claim and run a batch of eligible jobs concurrently.

        Each job settles independently; one failing or slow handler does not
        affect the accounting of the others. Raises ValidationError for a
        ``limit`` below 1.
        """
        if limit is None:
            limit = settings.JOB_BATCH_SIZE
        if limit < 1:
            raise ValidationError(f"Batch limit must be at least 1, got {limit}")

        jobs = await self.next_eligible_jobs(limit)
        batch = BatchResult(fetched=len(jobs))
        if not jobs:
            return batch

        outcomes = await asyncio.gather(
            *(self.process_job(job) for job in jobs),
            return_exceptions=True,
        )

        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error("Unexpected error processing job", job_id=str(job.id), error=str(outcome))
                batch.record(JobOutcome.ERRORED)
            else:
                batch.record(outcome)

        self.logger.info("Processed job batch", **batch.model_dump())
        return batch

    async def process_job(self, job: Job) -> JobOutcome:
        """Claim one job, run its handler and record the result."""
        start_time = time.perf_counter()
        log = self.logger.with_context(job_id=str(job.id), job_type=job.type)

        try:
            claimed = await self._claim(job.id)
        except STORE_ERRORS as e:
            log.error("Failed to claim job", error=str(e))
            return JobOutcome.ERRORED

        if claimed is None:
            log.debug("Job already claimed")
            return JobOutcome.SKIPPED

        try:
            result = await self.registry.dispatch(claimed.type, claimed.payload or {})
        except Exception as e:
            return await self._record_failure(claimed, e, log)

        return await self._record_success(claimed, result, start_time, log)

    async def _claim(self, job_id: UUID) -> Optional[Job]:
        async with self.session_factory() as session:
            job = await self.repository_factory(session).claim(job_id, self.clock())
            await session.commit()
            return job

    async def _record_success(self, job: Job, result: Any, start_time: float, log: ContextLogger) -> JobOutcome:
        now = self.clock()
        values = {
            "status": JobStatus.COMPLETED.value,
            "completed_at": now,
            "result": to_jsonable_python(result, fallback=str),
            "updated_at": now,
        }
        if not await self._write_transition(job, values, log):
            return JobOutcome.ERRORED

        log.info(
            f"Job completed: {job.type}",
            attempts=job.attempts,
            duration_ms=int((time.perf_counter() - start_time) * 1000),
        )
        return JobOutcome.COMPLETED

    async def _record_failure(self, job: Job, error: Exception, log: ContextLogger) -> JobOutcome:
        now = self.clock()
        error_message = getattr(error, "message", None) or str(error) or error.__class__.__name__
        should_retry = job.can_retry() and getattr(error, "retryable", True)

        if should_retry:
            values = {
                "status": JobStatus.PENDING.value,
                "error_message": error_message,
                "failed_at": None,
                "scheduled_for": self.retry_policy.next_run_at(now, job.attempts),
                "updated_at": now,
            }
            try:
                applied = await self._apply_transition(job, values, log)
            except IntegrityError:
                # A pending job with the same unique key was enqueued while this one ran
                should_retry = False
                error_message = f"{error_message} (superseded by pending job with unique key {job.unique_key})"
                applied = await self._write_transition(job, self._failed_values(error_message, now), log)
            except STORE_ERRORS as e:
                self._log_write_error(log, values, e)
                applied = False
        else:
            applied = await self._write_transition(job, self._failed_values(error_message, now), log)

        if not applied:
            return JobOutcome.ERRORED

        log.error(
            f"Job failed: {job.type}",
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            will_retry=should_retry,
            error=error_message,
            error_code=getattr(error, "code", None),
        )
        return JobOutcome.RETRIED if should_retry else JobOutcome.FAILED

    @staticmethod
    def _failed_values(error_message: str, now: datetime) -> Dict[str, Any]:
        return {
            "status": JobStatus.FAILED.value,
            "error_message": error_message,
            "failed_at": now,
            "updated_at": now,
        }

    async def _write_transition(self, job: Job, values: Dict[str, Any], log: ContextLogger) -> bool:
        """
        Persist the outcome of a processing job.

        On failure the job keeps its last committed state; nothing is raised.
        """
        try:
            return await self._apply_transition(job, values, log)
        except STORE_ERRORS as e:
            self._log_write_error(log, values, e)
            return False

    async def _apply_transition(self, job: Job, values: Dict[str, Any], log: ContextLogger) -> bool:
        async with self.session_factory() as session:
            applied = await self.repository_factory(session).transition(
                job.id, JobStatus.PROCESSING.value, values
            )
            await session.commit()

        if not applied:
            log.warning("Job left processing before its outcome was recorded", target_status=values["status"])
        return applied

    @staticmethod
    def _log_write_error(log: ContextLogger, values: Dict[str, Any], error: BaseException) -> None:
        log.error("Failed to record job outcome", target_status=values["status"], error=str(error))

    # Status changes

    async def cancel_job(self, job_id: UUID) -> QueueResult:
        """Cancel a pending job. Jobs already processing run to completion."""
        try:
            async with self.session_factory() as session:
                repo = self.repository_factory(session)
                now = self.clock()
                cancelled = await repo.transition(
                    job_id,
                    JobStatus.PENDING.value,
                    {"status": JobStatus.CANCELLED.value, "updated_at": now},
                )
                await session.commit()
                job = await repo.get_by_id(job_id)

            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            if not cancelled:
                raise ValidationError(f"Only pending jobs can be cancelled; job is {job.status}")

            self.logger.info("Job cancelled", job_id=str(job_id), job_type=job.type)
            return QueueResult.ok(job=job)

        except JobQueueError as e:
            self.logger.warning("Failed to cancel job", job_id=str(job_id), error=e.message, code=e.code)
            return QueueResult.from_error(e, job_id=job_id)
        except STORE_ERRORS as e:
            self.logger.error("Failed to cancel job", job_id=str(job_id), error=str(e))
            return QueueResult.from_error(PersistenceError(f"Failed to cancel job: {e}", cause=e), job_id=job_id)

    async def update_job_status(
        self,
        job_id: UUID,
        status: Union[JobStatus, str],
        result: Any = None,
        error: Optional[str] = None,
    ) -> QueueResult:
        """
        Move a job to ``status`` by hand, stamping the matching timestamp.

        Only transitions allowed by the job state machine are accepted.
        """
        try:
            try:
                target = JobStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown job status: {status}")

            async with self.session_factory() as session:
                repo = self.repository_factory(session)
                job = await repo.get_by_id(job_id)
                if job is None:
                    raise NotFoundError(f"Job {job_id} not found")
                if not job.can_transition_to(target.value):
                    raise ValidationError(f"Cannot move job from {job.status} to {target.value}")

                now = self.clock()
                values: Dict[str, Any] = {"status": target.value, "updated_at": now}
                if target == JobStatus.PROCESSING:
                    values["started_at"] = now
                elif target == JobStatus.COMPLETED:
                    values["completed_at"] = now
                    if result is not None:
                        values["result"] = to_jsonable_python(result, fallback=str)
                elif target == JobStatus.FAILED:
                    values["failed_at"] = now
                    if error:
                        values["error_message"] = error

                applied = await repo.transition(job_id, job.status, values)
                if not applied:
                    raise PersistenceError(f"Job {job_id} was modified concurrently")
                await session.commit()
                job = await repo.get_by_id(job_id)

            self.logger.info("Job status updated", job_id=str(job_id), status=target.value)
            return QueueResult.ok(job=job)

        except JobQueueError as e:
            self.logger.warning("Failed to update job status", job_id=str(job_id), error=e.message, code=e.code)
            return QueueResult.from_error(e, job_id=job_id)
        except STORE_ERRORS as e:
            self.logger.error("Failed to update job status", job_id=str(job_id), error=str(e))
            return QueueResult.from_error(PersistenceError(f"Failed to update job: {e}", cause=e), job_id=job_id)

    # Maintenance

    async def delete_old_jobs(self, days_to_keep: int) -> int:
        """Delete terminal jobs created more than ``days_to_keep`` days ago. Raises PersistenceError."""
        cutoff = self.clock() - timedelta(days=days_to_keep)
        try:
            async with self.session_factory() as session:
                count = await self.repository_factory(session).delete_terminal_before(cutoff)
                await session.commit()
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to cleanup old jobs: {e}", cause=e) from e

        if count > 0:
            self.logger.info(f"Cleaned up {count} old jobs", days_to_keep=days_to_keep)
        return count

    async def cleanup_old_jobs(self, days_to_keep: Optional[int] = None) -> int:
        """Retention sweep; store failures are logged and reported as 0 deleted."""
        if days_to_keep is None:
            days_to_keep = settings.JOB_RETENTION_DAYS
        try:
            return await self.delete_old_jobs(days_to_keep)
        except PersistenceError as e:
            self.logger.error("Failed to cleanup old jobs", error=e.message)
            return 0

    # Helpers

    @staticmethod
    def _validate_type(job_type: Union[JobType, str]) -> JobType:
        try:
            return JobType(job_type)
        except ValueError:
            raise ValidationError(f"Unknown job type: {job_type}")

    @staticmethod
    def _parse_options(options: Union[JobOptions, Dict[str, Any], None]) -> JobOptions:
        if options is None:
            return JobOptions()
        if isinstance(options, JobOptions):
            return options
        try:
            return JobOptions(**options)
        except (PydanticValidationError, TypeError) as e:
            raise ValidationError(f"Invalid job options: {e}")
