from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import Mapped, declared_attr

from venue_jobs.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize datetimes to timezone-aware UTC for safe comparisons."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class TimestampMixin:
    """Mixin for adding timestamp fields to models."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return Column(
            DateTime(timezone=True),
            default=utcnow,
            server_default=func.now(),
            onupdate=utcnow,
            nullable=False
        )


class BaseModel(Base, TimestampMixin):
    """Base model class with common functionality."""

    __abstract__ = True
