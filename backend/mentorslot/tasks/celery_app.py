# backend/mentorslot/tasks/celery_app.py
"""
Celery application configuration.

Sets up the Celery app with Redis as the broker, JSON serialization, UTC
scheduling, and the beat schedule that drives the expired-session sweep.
"""

import logging
import os
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from mentorslot.core.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    # Priority: CELERY_BROKER_URL -> settings.celery_broker_url -> settings.redis_url -> default
    broker_url = (
        os.getenv("CELERY_BROKER_URL")
        or settings.celery_broker_url
        or settings.redis_url
        or "redis://localhost:6379/0"
    )

    celery_app = Celery("mentorslot", broker=broker_url, backend=broker_url)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": "UTC",
            "enable_utc": True,
            "task_ignore_result": True,
            "task_soft_time_limit": 50,
            "task_time_limit": 60,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "worker_hijack_root_logger": False,
            "worker_prefetch_multiplier": 1,
        }
    )

    celery_app.conf.imports = ("mentorslot.tasks.booking_timeouts",)
    celery_app.conf.task_routes = {"booking_timeouts.*": {"queue": "bookings"}}

    from mentorslot.tasks.beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()
