# tutorhub/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for TutorHub.

Periodic jobs are scheduled with crontab expressions.
"""

from typing import Any, Dict

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    # Expire booking modification requests past their deadline
    "expire-stale-booking-modifications": {
        "task": "tutorhub.tasks.booking_tasks.expire_stale_modifications",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "bookings", "priority": 6},
    },
    # Create payout requests for teachers above the auto-payout threshold
    "process-auto-payouts": {
        "task": "tutorhub.tasks.payout_tasks.process_auto_payouts",
        "schedule": crontab(hour=2, minute=0),
        "options": {"queue": "payments", "priority": 5},
    },
}

SCHEDULE_CONFIG: Dict[str, Dict[str, Dict[str, Any]]] = {
    "development": {
        "expire-stale-booking-modifications": {
            "task": "tutorhub.tasks.booking_tasks.expire_stale_modifications",
            "schedule": crontab(minute="*/5"),
            "options": {"queue": "bookings"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> Dict[str, Dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, test)

    Returns:
        Mapping of schedule entry name to Celery beat configuration
    """
    base = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
