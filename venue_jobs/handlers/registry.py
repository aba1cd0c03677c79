from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Union

from venue_jobs.core.exceptions import HandlerError, ValidationError
from venue_jobs.models.job import JobType

JobHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


def _coerce_type(job_type: Union[JobType, str]) -> JobType:
    try:
        return JobType(job_type)
    except ValueError:
        raise ValidationError(f"Unknown job type: {job_type}")


class HandlerRegistry:
    """Maps each JobType to the coroutine function that performs it."""

    def __init__(self):
        self._handlers: Dict[JobType, JobHandler] = {}

    def register(self, job_type: Union[JobType, str], handler: Optional[JobHandler] = None):
        """
        Register ``handler`` for ``job_type``.

        Usable directly or as a decorator::

            @registry.register(JobType.SYNC_CALENDAR)
            async def sync_calendar(payload): ...
        """
        key = _coerce_type(job_type)

        def decorator(fn: JobHandler) -> JobHandler:
            if key in self._handlers:
                raise ValueError(f"Handler already registered for {key.value}")
            self._handlers[key] = fn
            return fn

        if handler is not None:
            return decorator(handler)
        return decorator

    def get(self, job_type: Union[JobType, str]) -> Optional[JobHandler]:
        try:
            return self._handlers.get(JobType(job_type))
        except ValueError:
            return None

    def is_registered(self, job_type: Union[JobType, str]) -> bool:
        return self.get(job_type) is not None

    def __iter__(self) -> Iterator[JobType]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    async def dispatch(self, job_type: Union[JobType, str], payload: Dict[str, Any]) -> Any:
        """
        Run the handler for ``job_type``.

        Raises ValidationError when no handler is registered and HandlerError
        wrapping whatever the handler raised.
        """
        handler = self.get(job_type)
        if handler is None:
            raise ValidationError(f"Unknown job type: {job_type}")

        try:
            return await handler(payload)
        except HandlerError:
            raise
        except Exception as e:
            raise HandlerError.wrap(e) from e
