"""
Celery: the generation pipeline (queue "generation") and retention cleanup (beat).
Delivery is at-least-once: acks_late + reject_on_worker_lost, the stage engine
absorbs the redeliveries.
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from babypeek.core.config import settings
from babypeek.core.logging import configure_logging

PROCESS_JOB_TASK = "babypeek.workers.tasks.process_job.process_job"
CLEANUP_TASK = "babypeek.workers.tasks.cleanup_expired.cleanup_expired"

celery_app = Celery(
    "babypeek",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "babypeek.workers.tasks.process_job",
        "babypeek.workers.tasks.cleanup_expired",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    result_expires=6 * 3600,
    broker_connection_retry_on_startup=True,
    task_routes={PROCESS_JOB_TASK: {"queue": "generation"}},
    beat_schedule={
        # every 6 hours at :15
        "cleanup-expired-jobs": {
            "task": CLEANUP_TASK,
            "schedule": crontab(minute=15, hour="*/6"),
        },
    },
)


@worker_process_init.connect
def _init_worker_logging(**_kwargs) -> None:
    configure_logging()
