from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from venue_jobs.models.message import Message, SmsTemplate
from .base_repository import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for the SMS message log."""

    def __init__(self, session: AsyncSession):
        super().__init__(Message, session)

    async def log_outbound_sms(
        self,
        to_number: str,
        body: str,
        message_sid: Optional[str],
        from_number: Optional[str] = None,
        customer_id: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """Record an SMS that was handed to the provider."""
        return await self.create({
            "customer_id": customer_id,
            "direction": "outbound",
            "message_sid": message_sid,
            "twilio_message_sid": message_sid,
            "body": body,
            "status": "sent",
            "twilio_status": "queued",
            "from_number": from_number,
            "to_number": to_number,
            "message_type": "sms",
            "message_metadata": metadata,
        })


class SmsTemplateRepository(BaseRepository[SmsTemplate]):
    """Repository for SMS templates."""

    def __init__(self, session: AsyncSession):
        super().__init__(SmsTemplate, session)

    async def get_active_template(self, template_key: str) -> Optional[SmsTemplate]:
        try:
            query = select(SmsTemplate).where(
                and_(
                    SmsTemplate.template_key == template_key,
                    SmsTemplate.is_active == True,  # noqa: E712
                )
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error getting SMS template {template_key}: {e}")
            raise
