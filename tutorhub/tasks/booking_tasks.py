# tutorhub/tasks/booking_tasks.py
"""Periodic booking maintenance."""

import logging
from typing import Any, Dict

from ..database import get_db_session
from ..services.booking_modification_service import BookingModificationService
from .celery_app import BaseTask, typed_task

logger = logging.getLogger(__name__)


@typed_task(
    base=BaseTask,
    bind=True,
    name="tutorhub.tasks.booking_tasks.expire_stale_modifications",
    max_retries=3,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def expire_stale_modifications(self: Any) -> Dict[str, Any]:
    """
    Expire every pending modification request whose deadline has passed.

    Safe to run concurrently or repeatedly: an expired request is never
    touched again.
    """
    with get_db_session() as db:
        expired = BookingModificationService(db).expire_stale_modifications()
    logger.info("Expired stale booking modifications", extra={"expired": expired})
    return {"expired": expired}
