"""
Celery application configuration.

Runs the periodic maintenance jobs:
- Transcription polling (backup for the AssemblyAI webhook)
- Retention purge of old soft-deleted records
- Cleanup of expired auth handoff codes
"""

import logging
from celery import Celery
from kombu import Exchange, Queue

from ..core.config import settings


logger = logging.getLogger(__name__)


# =============================================================================
# Celery Application
# =============================================================================

celery_app = Celery(
    "visitflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "visitflow.tasks.maintenance",
    ],
)


# =============================================================================
# Celery Configuration
# =============================================================================

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Hard limit kills the task, soft limit raises inside it
    task_time_limit=settings.celery_task_time_limit,
    task_soft_time_limit=settings.celery_task_time_limit - 30,

    worker_concurrency=settings.celery_worker_concurrency,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    result_expires=3600,
    broker_connection_retry_on_startup=True,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename="/tmp/celerybeat-schedule",

    beat_schedule={
        "poll-pending-transcriptions": {
            "task": "visitflow.tasks.maintenance.poll_pending_transcriptions",
            "schedule": 60.0,  # Every minute
        },
        "purge-expired-handoffs": {
            "task": "visitflow.tasks.maintenance.purge_expired_handoffs",
            "schedule": 3600.0,  # Hourly
        },
        "purge-soft-deleted-records": {
            "task": "visitflow.tasks.maintenance.purge_soft_deleted_records",
            "schedule": 86400.0,  # Daily
        },
    },
)


# =============================================================================
# Queue Configuration
# =============================================================================

default_exchange = Exchange("default", type="direct")
maintenance_exchange = Exchange("maintenance", type="direct")

celery_app.conf.task_queues = (
    Queue("default", default_exchange, routing_key="default"),
    # Long sweeps must not delay the transcription poller
    Queue("maintenance", maintenance_exchange, routing_key="maintenance"),
)

celery_app.conf.task_routes = {
    "visitflow.tasks.maintenance.purge_soft_deleted_records": {
        "queue": "maintenance",
        "routing_key": "maintenance",
    },
    "visitflow.tasks.maintenance.purge_expired_handoffs": {
        "queue": "maintenance",
        "routing_key": "maintenance",
    },
}


@celery_app.on_after_configure.connect
def setup_periodic_tasks(sender, **kwargs):
    logger.info("Celery worker configured with periodic tasks")
