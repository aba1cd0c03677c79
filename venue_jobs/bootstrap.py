from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from venue_jobs.core.config import settings
from venue_jobs.core.sms_client import SmsClient
from venue_jobs.handlers import (
    HandlerRegistry,
    MaintenanceHandlers,
    SmsJobHandlers,
    export_employees,
    process_booking_reminder,
    process_event_reminder,
)
from venue_jobs.models.job import JobType
from venue_jobs.services.job_queue import JobQueue


def build_job_queue(
    session_factory: async_sessionmaker[AsyncSession],
    sms_client: Optional[SmsClient] = None,
    registry: Optional[HandlerRegistry] = None,
) -> JobQueue:
    """
    Build a JobQueue with the standard handlers registered.

    The API process and every worker task call this with their own session
    factory; there is no shared queue instance.
    """
    registry = registry or HandlerRegistry()
    queue = JobQueue(session_factory, registry)

    sms = SmsJobHandlers(
        session_factory,
        sms_client or SmsClient.from_settings(),
        contact_phone=settings.CONTACT_PHONE_NUMBER,
    )
    maintenance = MaintenanceHandlers(queue)

    registry.register(JobType.SEND_SMS, sms.send_sms)
    registry.register(JobType.SEND_BULK_SMS, sms.send_bulk_sms)
    registry.register(JobType.PROCESS_BOOKING_REMINDER, process_booking_reminder)
    registry.register(JobType.PROCESS_EVENT_REMINDER, process_event_reminder)
    registry.register(JobType.CLEANUP_OLD_DATA, maintenance.cleanup_old_data)
    registry.register(JobType.EXPORT_EMPLOYEES, export_employees)

    return queue
