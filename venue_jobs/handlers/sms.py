import re
from typing import Any, Dict, List, Optional
from uuid import UUID
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from venue_jobs.core.database import STORE_ERRORS
from venue_jobs.core.logging import get_logger
from venue_jobs.core.sms_client import SmsClient
from venue_jobs.models.base import utcnow
from venue_jobs.repositories import CustomerRepository, MessageRepository, SmsTemplateRepository

logger = get_logger(__name__)

CONTACT_PHONE_PLACEHOLDER = "{{contact_phone}}"


def render_template(template_text: str, variables: Dict[str, Any], contact_phone: str = "") -> str:
    """Substitute ``{{name}}`` placeholders; ``{{contact_phone}}`` falls back to the venue number."""
    text = template_text
    for key, value in variables.items():
        text = re.sub(r"\{\{" + re.escape(str(key)) + r"\}\}", lambda _: str(value), text)
    if CONTACT_PHONE_PLACEHOLDER in text and not variables.get("contact_phone"):
        text = text.replace(CONTACT_PHONE_PLACEHOLDER, contact_phone)
    return text


def _parse_customer_ids(raw: Any) -> List[UUID]:
    if not isinstance(raw, list) or not raw:
        raise ValueError("customer_ids must be a non-empty list")
    return [value if isinstance(value, UUID) else UUID(str(value)) for value in raw]


def _parse_customer_id(raw: Any) -> Optional[UUID]:
    if raw is None or raw == "":
        return None
    try:
        return raw if isinstance(raw, UUID) else UUID(str(raw))
    except ValueError:
        raise ValueError(f"customer_id is not a valid UUID: {raw}")


class SmsJobHandlers:
    """
    Handlers for send_sms and send_bulk_sms jobs.

    No database session is held across a provider call. Once the provider
    has accepted a message, a failure to write the message log is logged
    and swallowed so a retry cannot send the same SMS twice.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sms_client: SmsClient,
        contact_phone: str = "",
    ):
        self.session_factory = session_factory
        self.sms_client = sms_client
        self.contact_phone = contact_phone

    def _require_client(self) -> None:
        if not self.sms_client.is_configured:
            raise RuntimeError("SMS provider is not configured")

    async def send_sms(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one SMS.

        Payload is either ``{to, message}`` or ``{to, template, variables}``
        with optional ``customer_id`` / ``booking_id`` for the message log.
        """
        self._require_client()
        to = payload.get("to")
        if not to:
            raise ValueError("send_sms payload requires 'to'")

        if payload.get("template") and payload.get("variables") is not None:
            return await self._send_template_sms(to, payload)

        result = await self.sms_client.send_sms(to, payload.get("message") or "")
        return result.to_dict()

    async def _send_template_sms(self, to: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        template_key = payload["template"]
        variables = payload.get("variables") or {}
        customer_id = _parse_customer_id(payload.get("customer_id"))
        booking_id = payload.get("booking_id")

        async with self.session_factory() as session:
            template = await SmsTemplateRepository(session).get_active_template(template_key)
        if not template:
            raise LookupError(f"SMS template not found: {template_key}")

        body = render_template(template.template_text, variables, self.contact_phone)
        result = await self.sms_client.send_sms(to, body)

        if result.success and (customer_id or booking_id):
            await self._record_outbound(
                to,
                body,
                result.sid,
                customer_id=customer_id,
                metadata={"booking_id": booking_id} if booking_id else None,
            )

        return result.to_dict()

    async def _record_outbound(
        self,
        to: str,
        body: str,
        message_sid: Optional[str],
        customer_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        mark_delivered: bool = False,
    ) -> bool:
        """Log a message the provider accepted; returns False if the store write failed."""
        try:
            async with self.session_factory() as session:
                await MessageRepository(session).log_outbound_sms(
                    to_number=to,
                    body=body,
                    message_sid=message_sid,
                    from_number=self.sms_client.from_number,
                    customer_id=customer_id,
                    metadata=metadata,
                )
                if mark_delivered and customer_id:
                    await CustomerRepository(session).mark_sms_delivered(customer_id, utcnow())
                await session.commit()
        except STORE_ERRORS as e:
            logger.error(
                "Failed to log sent SMS",
                message_sid=message_sid,
                customer_id=str(customer_id) if customer_id else None,
                error=str(e),
            )
            return False
        return True

    async def send_bulk_sms(self, payload: Dict[str, Any]) -> Dict[str, int]:
        """
        Send the same message to many customers.

        A failure for one recipient is counted and does not stop the rest, so
        the job completes once every recipient has been tried. Each delivered
        message is logged in its own transaction.
        """
        self._require_client()
        customer_ids = _parse_customer_ids(payload.get("customer_ids", payload.get("customerIds")))
        message: Optional[str] = payload.get("message")
        if not message:
            raise ValueError("send_bulk_sms payload requires 'message'")

        counts = {"total": len(customer_ids), "sent": 0, "failed": 0, "skipped": 0}

        async with self.session_factory() as session:
            customers = await CustomerRepository(session).get_customers(customer_ids)
        counts["skipped"] += len(customer_ids) - len(customers)
        unlogged = 0

        for customer in customers:
            if not customer.can_receive_sms:
                counts["skipped"] += 1
                continue

            try:
                result = await self.sms_client.send_sms(customer.mobile_number, message)
            except httpx.HTTPError as e:
                logger.warning("Bulk SMS delivery error", customer_id=str(customer.id), error=str(e))
                counts["failed"] += 1
                continue

            if not result.success:
                counts["failed"] += 1
                continue

            counts["sent"] += 1
            logged = await self._record_outbound(
                customer.mobile_number,
                message,
                result.sid,
                customer_id=customer.id,
                metadata={"bulk": True},
                mark_delivered=True,
            )
            if not logged:
                unlogged += 1

        logger.info("Bulk SMS finished", unlogged=unlogged, **counts)
        return counts
