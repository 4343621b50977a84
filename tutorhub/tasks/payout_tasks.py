# tutorhub/tasks/payout_tasks.py
"""Scheduled payout processing."""

import logging
from typing import Any, Dict

from ..database import get_db_session
from ..services.payout_service import PayoutService
from .celery_app import BaseTask, typed_task

logger = logging.getLogger(__name__)


@typed_task(
    base=BaseTask,
    bind=True,
    name="tutorhub.tasks.payout_tasks.process_auto_payouts",
    max_retries=2,
)
def process_auto_payouts(self: Any) -> Dict[str, Any]:
    """Open automatic payout requests for teachers at or above the auto-payout threshold."""
    with get_db_session() as db:
        result = PayoutService(db).process_auto_payouts()
    logger.info(
        "Auto payouts processed",
        extra={"payouts_created": result["created"], "payouts_failed": result["failed"]},
    )
    return result
