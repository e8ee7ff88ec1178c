from celery import Celery
from kombu import Queue

from app.platform.config import settings

SCAN_QUEUE = "scan.pipeline"
RUN_SCAN_TASK = "app.features.scan.workers.tasks.run_scan_job"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - scan.pipeline: one task per scan, running the whole pipeline
    - default: anything else

    Scan state lives in the Redis-backed scan record store, so task results
    are only kept briefly for inspection.
    """
    celery_app = Celery(
        "wcag_scanner",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        result_expires=3600,

        task_routes={
            RUN_SCAN_TASK: {"queue": SCAN_QUEUE},
        },
        task_queues=(
            Queue("default"),
            Queue(SCAN_QUEUE),
        ),
        task_default_queue="default",

        # One browser-heavy scan per worker process at a time
        worker_prefetch_multiplier=1,

        task_acks_late=True,
        task_reject_on_worker_lost=True,
    )

    celery_app.autodiscover_tasks(["app.features.scan.workers"])

    return celery_app


# Global Celery app instance
celery_app = create_celery_app()
