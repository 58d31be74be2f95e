"""TrackMate — Celery worker configuration."""
from celery import Celery
from celery.signals import setup_logging

from trackmate.config import get_settings
from trackmate.core.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "trackmate",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["trackmate.tasks.invoice_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_retry_delay=60,
    task_max_retries=3,
    task_routes={
        "trackmate.tasks.*": {"queue": "default"},
    },
)

# Celery Beat schedule
celery_app.conf.beat_schedule = {
    "mark-overdue-invoices": {
        "task": "trackmate.tasks.invoice_tasks.mark_overdue_invoices",
        "schedule": settings.OVERDUE_SWEEP_SECONDS,
    },
}


@setup_logging.connect
def _setup_logging(**kwargs) -> None:
    configure_logging()
