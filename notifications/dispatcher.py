"""
Notification Dispatcher

Receives assignment events from the scheduling engine and turns them into
an in-app Notification plus a real-time push on the assignee's channel group.
Delivery is fire-and-forget: failures are logged and never reach the caller.
"""
from dataclasses import asdict, dataclass
from typing import Optional
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from .models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentEvent:
    task_id: str
    assignee_id: str
    method: str
    score: Optional[float] = None

    def as_dict(self):
        return asdict(self)


class NotificationDispatcher:
    """In-app notification delivery for task assignment events"""

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer if channel_layer is not None else get_channel_layer()

    @staticmethod
    def group_name(user_id):
        return f"user_{user_id}_notifications"

    def dispatch_assignment(self, event: AssignmentEvent):
        """Persist and push the notification for an assignment; returns the Notification or None."""
        try:
            notification = self._create_notification(event)
        except Exception as e:
            logger.warning(f"Could not record assignment notification for task {event.task_id}: {e}")
            return None

        self._push(notification)
        return notification

    def _create_notification(self, event: AssignmentEvent):
        from scheduling.models import Task

        task = Task.objects.get(id=event.task_id)
        if event.method == 'AUTOMATIC':
            message = f"You have been automatically assigned: {task.title}"
        else:
            message = f"You have been assigned: {task.title}"
        if task.scheduled_for:
            message += f"\nScheduled for: {task.scheduled_for.isoformat()}"

        return Notification.objects.create(
            recipient_id=event.assignee_id,
            title="New Task Assigned",
            title_fr="Nouvelle tâche assignée",
            message=message,
            notification_type='TASK_ASSIGNED',
            data={**event.as_dict(), 'priority': task.priority},
        )

    def _push(self, notification):
        if self.channel_layer is None:
            return False
        try:
            async_to_sync(self.channel_layer.group_send)(
                self.group_name(notification.recipient_id),
                {
                    'type': 'send_notification',
                    'notification': {
                        'id': str(notification.id),
                        'title': notification.title,
                        'message': notification.message,
                        'notification_type': notification.notification_type,
                        'created_at': notification.created_at.isoformat(),
                        'is_read': notification.is_read,
                        'data': notification.data,
                    }
                }
            )
            return True
        except Exception as e:
            logger.warning(f"In-app push failed for notification {notification.id}: {e}")
            return False
