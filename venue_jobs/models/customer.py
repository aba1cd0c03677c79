from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, Column, DateTime, String, Uuid
from sqlalchemy.orm import Mapped
import uuid

from .base import BaseModel


class Customer(BaseModel):
    """Venue customer; only the messaging fields the SMS jobs need are mapped."""

    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = Column(String(100), nullable=False)
    last_name: Mapped[str] = Column(String(100), nullable=True)
    mobile_number: Mapped[Optional[str]] = Column(String(32), nullable=True)
    sms_opt_in: Mapped[bool] = Column(Boolean, nullable=False, default=True)
    messaging_status: Mapped[str] = Column(String(20), nullable=False, default="active")
    last_successful_sms_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.full_name}')>"

    @property
    def full_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name or ""

    @property
    def can_receive_sms(self) -> bool:
        return bool(self.mobile_number) and bool(self.sms_opt_in) and self.messaging_status == "active"
