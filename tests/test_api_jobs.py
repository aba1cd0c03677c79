"""
API tests for the job endpoints.
"""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4
from fastapi.testclient import TestClient

from venue_jobs.core.auth import create_service_token
from venue_jobs.core.config import settings
from venue_jobs.core.database import get_async_session
from venue_jobs.core.exceptions import NotFoundError, PersistenceError, ValidationError
from venue_jobs.main import app
from venue_jobs.models.job import JobType
from venue_jobs.schemas.job import BatchResult, JobOptions, QueueResult
from venue_jobs.services.job_queue import JobQueue
from jose import jwt


@pytest.fixture
def queue():
    return AsyncMock(spec=JobQueue)


@pytest.fixture
def client(queue):
    app.state.job_queue = queue
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_service_token('bookings')}"}


class TestAuth:

    def test_missing_token_is_rejected(self, client):
        response = client.post("/v1/jobs", json={"type": "send_sms"})

        assert response.status_code in (401, 403)

    def test_user_token_is_rejected(self, client):
        token = jwt.encode({"sub": "1", "type": "user"}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

        response = client.get(f"/v1/jobs/{uuid4()}", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid service token"

    def test_expired_token_is_rejected(self, client):
        token = create_service_token("bookings", expires_delta=timedelta(seconds=-1))

        response = client.get(f"/v1/jobs/{uuid4()}", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403


class TestJobEndpoints:

    def test_enqueue(self, client, queue, auth_headers):
        job_id = uuid4()
        queue.enqueue.return_value = QueueResult.ok(job_id=job_id)

        response = client.post(
            "/v1/jobs",
            json={
                "type": "send_sms",
                "payload": {"to": "+447700900000", "message": "hi"},
                "options": {"priority": 1, "maxAttempts": 5, "unique": "booking-1"},
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["job_id"] == str(job_id)
        assert body["deduplicated"] is False

        job_type, payload, options = queue.enqueue.call_args.args
        assert job_type == JobType.SEND_SMS
        assert payload == {"to": "+447700900000", "message": "hi"}
        assert options == JobOptions(priority=1, max_attempts=5, unique="booking-1")

    def test_enqueue_unknown_type_is_unprocessable(self, client, queue, auth_headers):
        response = client.post("/v1/jobs", json={"type": "make_coffee"}, headers=auth_headers)

        assert response.status_code == 422
        queue.enqueue.assert_not_called()

    def test_enqueue_store_failure(self, client, queue, auth_headers):
        queue.enqueue.return_value = QueueResult.from_error(PersistenceError("database unavailable"))

        response = client.post("/v1/jobs", json={"type": "send_sms"}, headers=auth_headers)

        assert response.status_code == 503
        assert response.json()["error"] == "database unavailable"

    def test_get_job_not_found(self, client, queue, auth_headers):
        job_id = uuid4()
        queue.get_job.return_value = QueueResult.from_error(NotFoundError(f"Job {job_id} not found"), job_id=job_id)

        response = client.get(f"/v1/jobs/{job_id}", headers=auth_headers)

        assert response.status_code == 404
        queue.get_job.assert_awaited_once_with(job_id)

    def test_cancel_rejected(self, client, queue, auth_headers):
        queue.cancel_job.return_value = QueueResult.from_error(ValidationError("Only pending jobs can be cancelled"))

        response = client.post(f"/v1/jobs/{uuid4()}/cancel", headers=auth_headers)

        assert response.status_code == 400

    def test_update_status(self, client, queue, auth_headers):
        job_id = uuid4()
        queue.update_job_status.return_value = QueueResult.ok(job_id=job_id)

        response = client.post(
            f"/v1/jobs/{job_id}/status",
            json={"status": "failed", "error": "gave up"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        args = queue.update_job_status.call_args.args
        assert args[0] == job_id
        assert args[1] == "failed"
        assert args[3] == "gave up"

    def test_process(self, client, queue, auth_headers):
        queue.process_jobs.return_value = BatchResult(fetched=3, completed=2, retried=1)

        response = client.post("/v1/jobs/process", json={"limit": 25}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["batch"]["completed"] == 2
        queue.process_jobs.assert_awaited_once_with(25)

    def test_process_without_body_uses_default(self, client, queue, auth_headers):
        queue.process_jobs.return_value = BatchResult()

        response = client.post("/v1/jobs/process", headers=auth_headers)

        assert response.status_code == 200
        queue.process_jobs.assert_awaited_once_with(None)

    def test_cleanup(self, client, queue, auth_headers):
        queue.delete_old_jobs.return_value = 12

        response = client.post("/v1/jobs/cleanup", json={"days_to_keep": 7}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["deleted"] == 12
        queue.delete_old_jobs.assert_awaited_once_with(7)


class TestHealth:

    def test_basic(self, client):
        response = client.get("/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_reports_job_counts(self, client, queue):
        session = AsyncMock()

        async def override_session():
            yield session

        app.dependency_overrides[get_async_session] = override_session
        queue.get_stats.return_value = {"pending": 2, "processing": 0, "completed": 5, "failed": 1, "cancelled": 0}

        response = client.get("/v1/health/detailed")

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["database"]["status"] == "healthy"
        assert checks["jobs"]["total"] == 8

    def test_detailed_unhealthy_store(self, client, queue):
        session = AsyncMock()

        async def override_session():
            yield session

        app.dependency_overrides[get_async_session] = override_session
        queue.get_stats.side_effect = PersistenceError("Failed to count jobs")

        response = client.get("/v1/health/detailed")

        assert response.status_code == 503
