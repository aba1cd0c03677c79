from .job_repository import JobRepository
from .customer_repository import CustomerRepository
from .message_repository import MessageRepository, SmsTemplateRepository

__all__ = [
    "JobRepository",
    "CustomerRepository",
    "MessageRepository",
    "SmsTemplateRepository",
]
