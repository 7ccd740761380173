"""Celery application for email worker."""

from celery import Celery

from restock_service.config import get_settings
from restock_service.logging_config import configure_logging
from shared.constants import EMAIL_QUEUE

settings = get_settings()
configure_logging(settings)

# Create Celery app
app = Celery(
    "email_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "email_worker.tasks.back_in_stock",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    worker_prefetch_multiplier=1,
    # A redelivered task finds its cohort already claimed
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue=EMAIL_QUEUE,
    task_routes={
        "email_worker.tasks.*": {"queue": EMAIL_QUEUE},
    },
)


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", EMAIL_QUEUE])


if __name__ == "__main__":
    run()
