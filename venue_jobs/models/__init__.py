from .job import Job, JobStatus, JobType
from .customer import Customer
from .message import Message, SmsTemplate

__all__ = [
    "Job",
    "JobStatus",
    "JobType",
    "Customer",
    "Message",
    "SmsTemplate",
]
