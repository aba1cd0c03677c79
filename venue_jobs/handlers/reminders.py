from typing import Any, Dict

from venue_jobs.core.logging import get_logger

logger = get_logger(__name__)


# Reminder delivery is owned by the bookings/events features; these jobs
# only acknowledge the request until that processor exists.

async def process_booking_reminder(payload: Dict[str, Any]) -> None:
    logger.info("Booking reminder processor not implemented", booking_id=payload.get("booking_id"))
    return None


async def process_event_reminder(payload: Dict[str, Any]) -> None:
    logger.info("Event reminder processor not implemented", event_id=payload.get("event_id"))
    return None
