"""
JobRepository tests against SQLite.
"""
import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from sqlalchemy.exc import IntegrityError

from venue_jobs.models.base import as_aware_utc
from venue_jobs.models.job import JobStatus
from venue_jobs.repositories.job_repository import JobRepository

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


async def add_job(session, **overrides):
    data = dict(
        type="send_sms",
        payload={},
        status=JobStatus.PENDING.value,
        priority=0,
        attempts=0,
        max_attempts=3,
        scheduled_for=NOW - timedelta(minutes=1),
    )
    data.update(overrides)
    job = await JobRepository(session).create(data)
    await session.commit()
    return job


class TestJobRepository:
    """Test cases for JobRepository."""

    @pytest.mark.asyncio
    async def test_get_eligible_orders_by_priority_then_age(self, db_session):
        a = await add_job(db_session, priority=5, created_at=NOW - timedelta(minutes=10))
        b = await add_job(db_session, priority=10, created_at=NOW - timedelta(minutes=5))
        c = await add_job(db_session, priority=5, created_at=NOW - timedelta(minutes=20))

        jobs = await JobRepository(db_session).get_eligible(NOW, 3)

        assert [job.id for job in jobs] == [b.id, c.id, a.id]

    @pytest.mark.asyncio
    async def test_get_eligible_skips_future_and_non_pending(self, db_session):
        due = await add_job(db_session)
        await add_job(db_session, scheduled_for=NOW + timedelta(minutes=5))
        await add_job(db_session, status=JobStatus.PROCESSING.value)
        await add_job(db_session, status=JobStatus.COMPLETED.value)

        jobs = await JobRepository(db_session).get_eligible(NOW, 10)

        assert [job.id for job in jobs] == [due.id]

    @pytest.mark.asyncio
    async def test_get_eligible_respects_limit(self, db_session):
        for _ in range(3):
            await add_job(db_session)

        assert len(await JobRepository(db_session).get_eligible(NOW, 2)) == 2

    @pytest.mark.asyncio
    async def test_find_pending_by_unique_key(self, db_session):
        job = await add_job(db_session, payload={"to": "+1", "unique_key": "booking-1"})
        await add_job(db_session, payload={"unique_key": "booking-1"}, status=JobStatus.COMPLETED.value)
        repo = JobRepository(db_session)

        found = await repo.find_pending_by_unique_key("send_sms", "booking-1")

        assert found.id == job.id
        assert await repo.find_pending_by_unique_key("send_sms", "booking-2") is None
        assert await repo.find_pending_by_unique_key("send_bulk_sms", "booking-1") is None

    @pytest.mark.asyncio
    async def test_second_pending_job_with_same_unique_key_is_rejected(self, db_session):
        await add_job(db_session, payload={"unique_key": "booking-1"})

        with pytest.raises(IntegrityError):
            await add_job(db_session, payload={"unique_key": "booking-1"})

    @pytest.mark.asyncio
    async def test_unique_key_constraint_ignores_other_rows(self, db_session):
        await add_job(db_session, payload={"unique_key": "booking-1"})
        await add_job(db_session, payload={"unique_key": "booking-1"}, status=JobStatus.COMPLETED.value)
        await add_job(db_session, type="send_bulk_sms", payload={"unique_key": "booking-1"})
        await add_job(db_session, payload={})
        await add_job(db_session, payload={})

        counts = await JobRepository(db_session).count_by_status()

        assert counts["pending"] == 4
        assert counts["completed"] == 1

    @pytest.mark.asyncio
    async def test_claim_increments_attempts_once(self, db_session):
        job = await add_job(db_session)
        repo = JobRepository(db_session)

        claimed = await repo.claim(job.id, NOW)
        await db_session.commit()
        second = await repo.claim(job.id, NOW)

        assert claimed.status == JobStatus.PROCESSING.value
        assert claimed.attempts == 1
        assert as_aware_utc(claimed.started_at) == NOW
        assert second is None

    @pytest.mark.asyncio
    async def test_transition_is_conditional_on_status(self, db_session):
        job = await add_job(db_session, status=JobStatus.PROCESSING.value)
        repo = JobRepository(db_session)

        assert await repo.transition(job.id, JobStatus.PENDING.value, {"status": "cancelled"}) is False
        assert await repo.transition(job.id, JobStatus.PROCESSING.value, {"status": "completed"}) is True
        assert await repo.transition(uuid4(), JobStatus.PENDING.value, {"status": "cancelled"}) is False

        reloaded = await repo.get_by_id(job.id)
        assert reloaded.status == JobStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_delete_terminal_before(self, db_session):
        cutoff = NOW - timedelta(days=30)
        old_done = await add_job(db_session, status=JobStatus.COMPLETED.value, created_at=NOW - timedelta(days=31))
        old_failed = await add_job(db_session, status=JobStatus.FAILED.value, created_at=NOW - timedelta(days=45))
        recent_done = await add_job(db_session, status=JobStatus.COMPLETED.value, created_at=NOW - timedelta(days=29))
        old_pending = await add_job(db_session, created_at=NOW - timedelta(days=400))
        repo = JobRepository(db_session)

        deleted = await repo.delete_terminal_before(cutoff)
        await db_session.commit()

        assert deleted == 2
        assert await repo.get_by_id(old_done.id) is None
        assert await repo.get_by_id(old_failed.id) is None
        assert await repo.get_by_id(recent_done.id) is not None
        assert await repo.get_by_id(old_pending.id) is not None

    @pytest.mark.asyncio
    async def test_count_by_status(self, db_session):
        await add_job(db_session)
        await add_job(db_session)
        await add_job(db_session, status=JobStatus.FAILED.value)

        counts = await JobRepository(db_session).count_by_status()

        assert counts == {
            "pending": 2,
            "processing": 0,
            "completed": 0,
            "failed": 1,
            "cancelled": 0,
        }
