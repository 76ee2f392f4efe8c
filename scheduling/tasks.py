from celery import shared_task
import logging

from notifications.dispatcher import NotificationDispatcher
from .recurrence_service import RecurrenceService

logger = logging.getLogger(__name__)


@shared_task
def fire_due_recurrences(restaurant_id=None):
    """
    Beat-driven recurrence sweep. Delivery is at-least-once; a repeated run
    finds the schedules already advanced and does nothing.
    """
    service = RecurrenceService(restaurant_id=restaurant_id, dispatcher=NotificationDispatcher())
    results = service.fire_due_schedules()
    return {key: results[key] for key in ('processed', 'created', 'failed', 'deactivated', 'skipped')}
