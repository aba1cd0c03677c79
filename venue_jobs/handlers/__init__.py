from .registry import HandlerRegistry, JobHandler
from .sms import SmsJobHandlers, render_template
from .maintenance import MaintenanceHandlers
from .exports import export_employees
from .reminders import process_booking_reminder, process_event_reminder

__all__ = [
    "HandlerRegistry",
    "JobHandler",
    "SmsJobHandlers",
    "render_template",
    "MaintenanceHandlers",
    "export_employees",
    "process_booking_reminder",
    "process_event_reminder",
]
