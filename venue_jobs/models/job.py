from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped
import uuid

from .base import BaseModel, utcnow


# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class JobType(str, Enum):
    """Kinds of background work; each maps to one handler."""
    SEND_SMS = "send_sms"
    SEND_BULK_SMS = "send_bulk_sms"
    EXPORT_EMPLOYEES = "export_employees"
    REBUILD_CATEGORY_STATS = "rebuild_category_stats"
    CATEGORIZE_HISTORICAL_EVENTS = "categorize_historical_events"
    PROCESS_BOOKING_REMINDER = "process_booking_reminder"
    PROCESS_EVENT_REMINDER = "process_event_reminder"
    GENERATE_REPORT = "generate_report"
    SYNC_CALENDAR = "sync_calendar"
    CLEANUP_OLD_DATA = "cleanup_old_data"


class JobStatus(str, Enum):
    """Job lifecycle status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: FrozenSet[str] = frozenset({
    JobStatus.COMPLETED.value,
    JobStatus.FAILED.value,
    JobStatus.CANCELLED.value,
})

# processing -> pending is the retry edge
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    JobStatus.PENDING.value: frozenset({JobStatus.PROCESSING.value, JobStatus.CANCELLED.value}),
    JobStatus.PROCESSING.value: frozenset({
        JobStatus.COMPLETED.value,
        JobStatus.FAILED.value,
        JobStatus.PENDING.value,
    }),
    JobStatus.COMPLETED.value: frozenset(),
    JobStatus.FAILED.value: frozenset(),
    JobStatus.CANCELLED.value: frozenset(),
}


def is_valid_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class Job(BaseModel):
    """
    A unit of deferred work.

    Attributes:
        id: Unique job identifier
        type: JobType value selecting the handler
        payload: Handler input; may embed ``unique_key`` for de-duplication
        status: JobStatus value
        priority: Higher runs first
        attempts: Execution attempts made so far
        max_attempts: Attempts allowed before the job fails terminally
        scheduled_for: Earliest time the job may run
        error_message: Reason for the most recent failure
        result: Handler output, stored on success
    """

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = Column(String(50), nullable=False, index=True)
    payload: Mapped[Dict[str, Any]] = Column(JSONType, nullable=False, default=dict)
    status: Mapped[str] = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)
    priority: Mapped[int] = Column(Integer, nullable=False, default=0)
    attempts: Mapped[int] = Column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = Column(Integer, nullable=False, default=3)
    scheduled_for: Mapped[datetime] = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    started_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = Column(Text, nullable=True)
    result: Mapped[Optional[Any]] = Column(JSONType, nullable=True)

    __table_args__ = (
        Index("jobs_status_scheduled_for_idx", "status", "scheduled_for"),
        Index("jobs_priority_created_at_idx", "priority", "created_at"),
        Index("jobs_type_status_idx", "type", "status"),
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, type='{self.type}', status='{self.status}', attempts={self.attempts})>"

    @property
    def unique_key(self) -> Optional[str]:
        return (self.payload or {}).get("unique_key")

    def is_terminal(self) -> bool:
        """Check if job is in a terminal state."""
        return self.status in TERMINAL_STATUSES

    def can_retry(self) -> bool:
        """Check if another attempt is allowed after a failure."""
        return self.attempts < self.max_attempts

    def can_transition_to(self, status: str) -> bool:
        return is_valid_transition(self.status, status)


# At most one pending job per (type, unique_key); rows without a key are not constrained
Index(
    "jobs_pending_unique_key_idx",
    Job.type,
    Job.payload["unique_key"].as_string(),
    unique=True,
    postgresql_where=Job.status == JobStatus.PENDING.value,
    sqlite_where=Job.status == JobStatus.PENDING.value,
)
