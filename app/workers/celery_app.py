"""Celery app for blob maintenance; sweeps and purges are routed to a dedicated queue."""

from celery import Celery
from app.config import get_settings

settings = get_settings()
celery_app = Celery(
    "storyboard",
    broker=settings.celery_broker,
    backend=settings.redis_url,
    include=[
        "app.workers.tasks.storage",
    ],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes={"app.workers.tasks.storage.*": {"queue": settings.celery_blob_queue}},
    # A sweep pages the whole namespace; cap it so a stuck listing frees the worker.
    task_time_limit=settings.celery_task_time_limit,
    task_acks_late=True,
    # Re-delivered after a worker crash; sweeps and purges are safe to repeat.
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
)
