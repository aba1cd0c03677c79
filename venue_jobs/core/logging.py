import logging
import sys
import structlog

from venue_jobs.core.config import settings


def setup_logging():
    """
    Configure structured logging for the application.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ContextLogger:
    """
    Logger with context support for tracing jobs across their lifecycle.
    """

    def __init__(self, name: str, logger=None):
        self.logger = logger if logger is not None else structlog.get_logger(name)
        self.name = name

    def with_context(self, **kwargs) -> "ContextLogger":
        """Return a logger that adds ``kwargs`` to every event it emits."""
        return ContextLogger(self.name, self.logger.bind(**kwargs))

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger instance.
    """
    return ContextLogger(name)
