# tutorhub/tasks/celery_app.py
"""
Celery application configuration for TutorHub.

Sets up the Celery app with Redis as the broker, JSON serialization, the
beat schedule and a base task class that logs failures and retries.
"""

import logging
from typing import Any, Callable, Dict, Type, TypeVar, cast

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings

logger = logging.getLogger(__name__)

TaskCallable = TypeVar("TaskCallable", bound=Callable[..., Any])


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = settings.celery_broker_url or settings.redis_url or "redis://localhost:6379/0"

    celery_app = Celery("tutorhub", broker=broker_url, backend=broker_url)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.timezone,
            "enable_utc": True,
            "worker_prefetch_multiplier": 4,
            "worker_max_tasks_per_child": 1000,
            "task_soft_time_limit": 300,
            "task_time_limit": 600,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_default_retry_delay": 60,
            "task_max_retries": 3,
            "worker_hijack_root_logger": False,
            "task_always_eager": settings.environment == "test",
        }
    )

    celery_app.conf.imports = (
        "tutorhub.tasks.booking_tasks",
        "tutorhub.tasks.payout_tasks",
    )
    celery_app.conf.task_routes = {
        "tutorhub.tasks.payout_tasks.*": {"queue": "payments"},
        "tutorhub.tasks.booking_tasks.*": {"queue": "bookings"},
    }

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule(settings.environment)
    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


celery_app = create_celery_app()


class BaseTask(Task):
    """Base task with failure and retry logging."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        """Log task failures."""
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "task_args": str(args),
                "task_kwargs": str(kwargs),
            },
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        """Log task retries."""
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "retry_count": self.request.retries,
            },
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app.Task = cast(Type[Task], BaseTask)


def typed_task(*task_args: Any, **task_kwargs: Any) -> Callable[[TaskCallable], TaskCallable]:
    """Return a Celery task decorator that keeps the wrapped function's type."""
    return cast(Callable[[TaskCallable], TaskCallable], celery_app.task(*task_args, **task_kwargs))


@typed_task(name="tutorhub.tasks.health_check")
def health_check() -> Dict[str, str]:
    """Simple health check task to verify Celery is working."""
    from datetime import datetime, timezone

    current_task = celery_app.current_task
    return {
        "status": "healthy",
        "worker": current_task.request.hostname if current_task else "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
