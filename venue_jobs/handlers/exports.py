from typing import Any, Dict

from venue_jobs.core.exceptions import UnsupportedJobError
from venue_jobs.core.logging import get_logger

logger = get_logger(__name__)


async def export_employees(payload: Dict[str, Any]) -> None:
    """Employee exports are produced by the staff portal; fail at once rather than retry."""
    logger.warning("Employee export requested from the job worker", filters=payload.get("filters") or {})
    raise UnsupportedJobError("export_employees is not supported by the job worker")
