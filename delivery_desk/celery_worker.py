"""
Celery Worker Configuration

Redis-backed worker for the delivered-order archive. Archive writes share
one workbook and serialize on its file lock, so a single low-concurrency
queue is all the worker needs.

Run from project root:
    celery -A delivery_desk.celery_worker worker --loglevel=info
"""

from celery import Celery

from delivery_desk.core.config import get_settings

settings = get_settings()

ARCHIVE_QUEUE = "delivery_archive"

celery_app = Celery(
    'delivery_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['delivery_desk.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Every archive task goes through the same workbook lock
    task_default_queue=ARCHIVE_QUEUE,
    worker_prefetch_multiplier=1,
    worker_concurrency=1,

    # Archive results are only inspected while debugging
    result_expires=1800,

    # A delivered order must reach the archive even if the worker dies mid-write
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
