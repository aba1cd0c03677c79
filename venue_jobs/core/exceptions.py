from typing import Optional


class JobQueueError(Exception):
    """Base class for errors surfaced by the job queue."""

    code = "job_queue_error"
    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(JobQueueError):
    """Unknown job type, malformed options, or an invalid status transition."""

    code = "validation_error"


class PersistenceError(JobQueueError):
    """The job store could not be read or written."""

    code = "persistence_error"


class NotFoundError(JobQueueError):
    """No job exists with the given id."""

    code = "not_found"


class HandlerError(JobQueueError):
    """A dispatched handler failed; carries the handler's message."""

    code = "handler_error"

    @classmethod
    def wrap(cls, exc: BaseException) -> "HandlerError":
        message = str(exc) or exc.__class__.__name__
        return cls(message, cause=exc)


class UnsupportedJobError(HandlerError):
    """The job type is accepted by the queue but this worker cannot perform it."""

    code = "unsupported_job"
    retryable = False

