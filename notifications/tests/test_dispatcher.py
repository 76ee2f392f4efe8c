"""
Tests for assignment notifications: persisted in-app and pushed to the assignee's group.
"""
from asgiref.sync import async_to_sync
from channels.layers import InMemoryChannelLayer
from django.test import TestCase

from notifications.dispatcher import AssignmentEvent, NotificationDispatcher
from notifications.models import Notification
from scheduling.tests.helpers import make_restaurant, make_staff, make_task


class BrokenChannelLayer:
    async def group_send(self, group, message):
        raise RuntimeError("redis unavailable")


class NotificationDispatcherTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.staff = make_staff(self.restaurant)
        self.task = make_task(self.restaurant, title='Clean grill')
        self.event = AssignmentEvent(
            task_id=str(self.task.id), assignee_id=str(self.staff.id), method='AUTOMATIC', score=91.5
        )

    def test_creates_notification_and_pushes_to_user_group(self):
        layer = InMemoryChannelLayer()
        channel = async_to_sync(layer.new_channel)()
        async_to_sync(layer.group_add)(f"user_{self.staff.id}_notifications", channel)

        notification = NotificationDispatcher(channel_layer=layer).dispatch_assignment(self.event)

        self.assertEqual(notification.recipient, self.staff)
        self.assertEqual(notification.notification_type, 'TASK_ASSIGNED')
        self.assertIn('Clean grill', notification.message)
        self.assertEqual(notification.data['score'], 91.5)

        message = async_to_sync(layer.receive)(channel)
        self.assertEqual(message['type'], 'send_notification')
        self.assertEqual(message['notification']['id'], str(notification.id))

    def test_push_failure_is_logged_not_raised(self):
        dispatcher = NotificationDispatcher(channel_layer=BrokenChannelLayer())
        with self.assertLogs('notifications.dispatcher', level='WARNING'):
            notification = dispatcher.dispatch_assignment(self.event)
        self.assertIsNotNone(notification)
        self.assertEqual(Notification.objects.filter(recipient=self.staff).count(), 1)

    def test_unknown_task_is_logged_not_raised(self):
        event = AssignmentEvent(
            task_id='00000000-0000-0000-0000-000000000000', assignee_id=str(self.staff.id), method='MANUAL'
        )
        with self.assertLogs('notifications.dispatcher', level='WARNING'):
            result = NotificationDispatcher(channel_layer=InMemoryChannelLayer()).dispatch_assignment(event)
        self.assertIsNone(result)
        self.assertFalse(Notification.objects.exists())
