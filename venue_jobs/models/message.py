from typing import Any, Dict, Optional
from sqlalchemy import Boolean, Column, ForeignKey, JSON, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped
import uuid

from .base import BaseModel


class Message(BaseModel):
    """Outbound/inbound SMS log entry."""

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[Optional[uuid.UUID]] = Column(Uuid, ForeignKey("customers.id"), nullable=True, index=True)
    direction: Mapped[str] = Column(String(10), nullable=False)  # inbound|outbound
    message_sid: Mapped[Optional[str]] = Column(String(64), nullable=True, index=True)
    twilio_message_sid: Mapped[Optional[str]] = Column(String(64), nullable=True)
    body: Mapped[str] = Column(Text, nullable=False)
    status: Mapped[str] = Column(String(20), nullable=False)
    twilio_status: Mapped[Optional[str]] = Column(String(20), nullable=True)
    from_number: Mapped[Optional[str]] = Column(String(32), nullable=True)
    to_number: Mapped[Optional[str]] = Column(String(32), nullable=True)
    message_type: Mapped[str] = Column(String(10), nullable=False, default="sms")
    message_metadata: Mapped[Optional[Dict[str, Any]]] = Column(
        "metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, direction='{self.direction}', status='{self.status}')>"


class SmsTemplate(BaseModel):
    """Reusable SMS text with ``{{variable}}`` placeholders."""

    __tablename__ = "table_booking_sms_templates"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_key: Mapped[str] = Column(String(100), nullable=False, index=True)
    template_text: Mapped[str] = Column(Text, nullable=False)
    is_active: Mapped[bool] = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<SmsTemplate(template_key='{self.template_key}', is_active={self.is_active})>"
