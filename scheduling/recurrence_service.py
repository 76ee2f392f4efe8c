from datetime import timedelta
from typing import Any, Dict, Optional
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import APIException

from core.exceptions import (
    InvalidRecurrencePattern,
    RecurrenceExhausted,
    ResourceNotFound,
    TaskValidationError,
    error_message,
)
from core.timezone_utils import ensure_aware, get_restaurant_timezone, is_valid_timezone, local_date
from .models import Task, TaskRecurrence, TaskTemplate
from .recurrence import RecurrencePattern, compute_next_run
from .task_assignment_service import OUTCOME_NO_ELIGIBLE_CANDIDATES, TaskAssignmentService

logger = logging.getLogger(__name__)


class RecurrenceService:
    """Create recurring schedules and fire the ones that are due.

    The sweep returns a summary dict. Every schedule is handled in its own
    transaction; a broken template counts as a failed run and the schedule
    still moves on to its next occurrence.
    """

    def __init__(self, restaurant_id=None, dispatcher=None):
        self.restaurant_id = str(restaurant_id) if restaurant_id else None
        self.dispatcher = dispatcher

    def _scoped(self, queryset):
        if self.restaurant_id:
            return queryset.filter(restaurant_id=self.restaurant_id)
        return queryset

    # ------------------------------------------------------------------
    # Schedule management
    # ------------------------------------------------------------------
    def create_recurrence(self, template_id, pattern: Dict[str, Any], timezone_name: Optional[str] = None,
                          end_date=None, max_runs: Optional[int] = None, name: Optional[str] = None,
                          actor=None, now=None) -> TaskRecurrence:
        try:
            template = self._scoped(TaskTemplate.objects.select_related('restaurant')).get(id=template_id, is_active=True)
        except (TaskTemplate.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFound(f"Task template {template_id} not found.")

        if not isinstance(pattern, dict):
            raise InvalidRecurrencePattern("Recurrence pattern must be an object.")
        tz_name = timezone_name or pattern.get('timezone') or get_restaurant_timezone(template.restaurant)
        if not is_valid_timezone(tz_name):
            raise InvalidRecurrencePattern(f"Unknown timezone '{tz_name}'.")
        parsed = RecurrencePattern.from_dict({**pattern, 'timezone': tz_name})

        if max_runs is not None and int(max_runs) < 1:
            raise TaskValidationError("max_runs must be a positive integer.")

        now = ensure_aware(now) or timezone.now()
        next_run_at = compute_next_run(parsed, now)
        if end_date and local_date(next_run_at, tz_name) > end_date:
            raise TaskValidationError("end_date is before the first scheduled run.")

        recurrence = TaskRecurrence.objects.create(
            template=template,
            restaurant_id=template.restaurant_id,
            name=name or template.name,
            recurrence_pattern=parsed.to_dict(),
            timezone=tz_name,
            next_run_at=next_run_at,
            end_date=end_date,
            max_runs=max_runs,
            created_by=actor if getattr(actor, 'pk', None) else None,
        )
        logger.info(f"Created {parsed.type} recurrence {recurrence.id} for template '{template.name}', first run {next_run_at.isoformat()}")
        return recurrence

    def deactivate_recurrence(self, recurrence_id) -> TaskRecurrence:
        try:
            recurrence = self._scoped(TaskRecurrence.objects.all()).get(id=recurrence_id)
        except (TaskRecurrence.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFound(f"Recurrence {recurrence_id} not found.")

        if recurrence.is_active:
            TaskRecurrence.objects.filter(id=recurrence.id).update(is_active=False, updated_at=timezone.now())
            recurrence.refresh_from_db()
            logger.info(f"Recurrence {recurrence.id} deactivated")
        return recurrence

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------
    @staticmethod
    def check_not_exhausted(recurrence: TaskRecurrence, fired_at):
        if recurrence.max_runs is not None and recurrence.total_runs >= recurrence.max_runs:
            raise RecurrenceExhausted(f"reached max_runs ({recurrence.max_runs})")
        if recurrence.end_date and local_date(fired_at, recurrence.timezone) > recurrence.end_date:
            raise RecurrenceExhausted(f"past end_date ({recurrence.end_date})")

    @staticmethod
    def materialize(recurrence: TaskRecurrence, fired_at) -> Task:
        """Create the task instance for one firing of a schedule."""
        template = recurrence.template
        if template is None or not template.is_active:
            raise ResourceNotFound(f"Template for recurrence {recurrence.id} is missing or inactive.")

        duration = template.estimated_duration_minutes
        return Task.objects.create(
            restaurant_id=recurrence.restaurant_id,
            template=template,
            recurrence=recurrence,
            title=template.name,
            title_fr=template.name_fr or template.name,
            description=template.description or '',
            task_type=template.task_type,
            priority=template.priority,
            required_skills=list(template.required_skills or []),
            location=template.location,
            minimum_role=template.minimum_role,
            scheduled_for=fired_at,
            due_date=fired_at + timedelta(minutes=duration) if duration else None,
            estimated_duration_minutes=duration,
            is_recurring_instance=True,
            metadata={'recurrence_id': str(recurrence.id), 'fired_at': fired_at.isoformat()},
            created_by=recurrence.created_by,
        )

    def _auto_assign(self, task: Task):
        service = TaskAssignmentService(task.restaurant_id, dispatcher=self.dispatcher)
        # Savepoint: a failed binding must not undo the task or the schedule advance
        try:
            with transaction.atomic():
                outcome = service.auto_assign_task(task.id)
        except APIException as e:
            logger.warning(f"Auto-assignment skipped for recurring task {task.id}: {error_message(e)}")
            return None
        except Exception:
            logger.exception(f"Auto-assignment failed for recurring task {task.id}; left pending")
            return None
        if outcome['outcome'] == OUTCOME_NO_ELIGIBLE_CANDIDATES:
            logger.info(f"Recurring task {task.id} left pending: no eligible staff")
            return None
        return outcome['assigned_staff_id']

    def _fire_one(self, recurrence_id, now) -> Dict[str, Any]:
        with transaction.atomic():
            recurrence = (
                TaskRecurrence.objects.select_for_update()
                .select_related('template')
                .filter(id=recurrence_id)
                .first()
            )
            # Another worker may have fired it since the due list was read
            if recurrence is None or not recurrence.is_active or recurrence.next_run_at is None \
                    or recurrence.next_run_at > now:
                return {'recurrence_id': str(recurrence_id), 'result': 'skipped'}

            fired_at = recurrence.next_run_at
            detail = {'recurrence_id': str(recurrence.id), 'name': recurrence.name, 'fired_at': fired_at.isoformat()}

            try:
                self.check_not_exhausted(recurrence, fired_at)
            except RecurrenceExhausted as e:
                TaskRecurrence.objects.filter(id=recurrence.id).update(is_active=False, updated_at=now)
                logger.info(f"Recurrence {recurrence.id} deactivated: {e}")
                return {**detail, 'result': 'deactivated', 'reason': str(e)}

            try:
                pattern = RecurrencePattern.from_dict(recurrence.recurrence_pattern, default_timezone=recurrence.timezone)
                next_run_at = compute_next_run(pattern, fired_at)
            except InvalidRecurrencePattern as e:
                TaskRecurrence.objects.filter(id=recurrence.id).update(
                    is_active=False, failed_runs=F('failed_runs') + 1, updated_at=now
                )
                logger.error(f"Recurrence {recurrence.id} has an invalid pattern and was deactivated: {error_message(e)}")
                return {**detail, 'result': 'failed', 'error': error_message(e), 'deactivated': True}

            claimed = TaskRecurrence.objects.filter(
                id=recurrence.id, is_active=True, next_run_at=fired_at
            ).update(next_run_at=next_run_at, last_run_at=fired_at, updated_at=now)
            if not claimed:
                return {**detail, 'result': 'skipped'}
            detail['next_run_at'] = next_run_at.isoformat()

            try:
                with transaction.atomic():
                    task = self.materialize(recurrence, fired_at)
            except Exception as e:
                TaskRecurrence.objects.filter(id=recurrence.id).update(failed_runs=F('failed_runs') + 1)
                logger.exception(f"Failed to materialize task for recurrence {recurrence.id} at {fired_at.isoformat()}")
                return {**detail, 'result': 'failed', 'error': error_message(e)}

            TaskRecurrence.objects.filter(id=recurrence.id).update(total_runs=F('total_runs') + 1)

            assigned_to = None
            if recurrence.template.auto_assign:
                assigned_to = self._auto_assign(task)

        return {**detail, 'result': 'created', 'task_id': str(task.id), 'assigned_to': assigned_to}

    def fire_due_schedules(self, now=None, cancel_event=None) -> Dict[str, Any]:
        """
        Fire every active schedule whose next_run_at is at or before ``now``.
        Safe to re-run: a schedule already advanced by an earlier sweep is skipped.
        """
        now = ensure_aware(now) or timezone.now()
        due_ids = list(
            self._scoped(TaskRecurrence.objects.filter(
                is_active=True, next_run_at__isnull=False, next_run_at__lte=now
            ))
            .order_by('next_run_at')
            .values_list('id', flat=True)
        )

        results = {
            'now': now.isoformat(),
            'due': len(due_ids),
            'processed': 0,
            'created': 0,
            'failed': 0,
            'deactivated': 0,
            'skipped': 0,
            'cancelled': False,
            'remaining': 0,
            'errors': [],
            'details': [],
        }

        for position, recurrence_id in enumerate(due_ids):
            if cancel_event is not None and cancel_event.is_set():
                results['cancelled'] = True
                results['remaining'] = len(due_ids) - position
                logger.info(f"Recurrence sweep cancelled; {results['remaining']} schedule(s) left for the next run")
                break

            try:
                detail = self._fire_one(recurrence_id, now)
            except Exception as e:
                logger.exception(f"Recurrence {recurrence_id} could not be processed")
                detail = {'recurrence_id': str(recurrence_id), 'result': 'failed', 'error': str(e)}
            outcome = detail['result']
            if outcome == 'skipped':
                results['skipped'] += 1
                continue

            results['processed'] += 1
            results['details'].append(detail)
            if outcome == 'created':
                results['created'] += 1
            elif outcome == 'deactivated':
                results['deactivated'] += 1
            elif outcome == 'failed':
                results['failed'] += 1
                results['errors'].append({'recurrence_id': detail['recurrence_id'], 'error': detail['error']})
                if detail.get('deactivated'):
                    results['deactivated'] += 1

        logger.info(
            f"Recurrence sweep at {results['now']}: processed={results['processed']} created={results['created']} "
            f"failed={results['failed']} deactivated={results['deactivated']} skipped={results['skipped']}"
        )
        return results
