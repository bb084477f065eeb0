"""
Celery Tasks
Background tasks for the delivered-order archive.
"""

import logging
import time
from datetime import datetime

from delivery_desk.celery_worker import celery_app
from delivery_desk.services.archive import DeliveryArchive

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def archive_delivered_order(self, row: dict) -> dict:
    """
    Append a delivered order to the Excel archive.

    Args:
        row: Archive row built by ``order_archive_row``

    Returns:
        dict: Result of the archive operation
    """
    task_id = self.request.id
    order_id = row.get('order_id', 'unknown')

    logger.info(f"Task {task_id}: archiving order {order_id}")
    start_time = time.time()

    result = DeliveryArchive().archive_order(row)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"Task {task_id}: order {order_id} not archived - {result['message']}")
        # Lock timeouts and unreadable workbooks are usually transient
        raise self.retry(exc=RuntimeError(result['message']))

    logger.info(f"Task {task_id}: order {order_id} archived in {elapsed}s")
    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_archive() -> dict:
    """
    Clear the delivered-order archive (for testing/reset purposes).
    """
    success = DeliveryArchive().clear_all()
    return {
        'success': success,
        'message': 'Archive cleared' if success else 'Failed to clear archive',
        'timestamp': datetime.now().isoformat()
    }
