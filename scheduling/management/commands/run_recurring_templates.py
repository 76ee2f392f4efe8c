from django.core.management.base import BaseCommand, CommandError

from core.timezone_utils import parse_iso_datetime
from notifications.dispatcher import NotificationDispatcher
from scheduling.recurrence_service import RecurrenceService


class Command(BaseCommand):
    help = "Fire due recurring task schedules. Normally run by Celery beat; use this for manual or cron runs."

    def add_arguments(self, parser):
        parser.add_argument('--now', type=str, help='Override the sweep instant (ISO-8601). Defaults to the current time.', default=None)
        parser.add_argument('--restaurant-id', type=str, help='Limit to a specific restaurant UUID.', default=None)

    def handle(self, *args, **options):
        now_str = options.get('now')
        restaurant_id = options.get('restaurant_id')

        now = None
        if now_str:
            try:
                now = parse_iso_datetime(now_str)
            except ValueError as e:
                raise CommandError(f"Invalid --now value: {e}")

        if restaurant_id:
            from accounts.models import Restaurant
            if not Restaurant.objects.filter(id=restaurant_id).exists():
                raise CommandError(f"Restaurant not found: {restaurant_id}")

        service = RecurrenceService(restaurant_id=restaurant_id, dispatcher=NotificationDispatcher())
        results = service.fire_due_schedules(now=now)

        self.stdout.write(self.style.SUCCESS(
            f"Recurrence run complete: now={results['now']} due={results['due']} "
            f"processed={results['processed']} created={results['created']} "
            f"failed={results['failed']} deactivated={results['deactivated']}"
        ))

        if results['errors']:
            self.stdout.write(self.style.WARNING(f"Errors: {results['errors']}"))
