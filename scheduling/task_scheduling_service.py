"""
Task Scheduling Service

Creates scheduled tasks one at a time or in bulk. Each item is created in
its own transaction together with any requested assignment, so a failed
assignment rolls back that item's task and nothing else.
"""

from datetime import timedelta
from typing import Any, Dict, Iterable, Optional
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from rest_framework.exceptions import APIException

from core.exceptions import BulkLimitExceeded, ResourceNotFound, TaskValidationError, error_message
from .models import Task, TaskTemplate
from .serializers import ScheduleTaskSerializer
from .task_assignment_service import OUTCOME_NO_ELIGIBLE_CANDIDATES, TaskAssignmentService

logger = logging.getLogger(__name__)


class TaskSchedulingService:
    """Single and bulk task scheduling for one restaurant"""

    def __init__(self, restaurant_id, dispatcher=None, assignment_service=None):
        self.restaurant_id = str(restaurant_id)
        self.assignment_service = assignment_service or TaskAssignmentService(restaurant_id, dispatcher=dispatcher)
        self.engine_settings = settings.TASK_ENGINE

    def _get_template(self, template_id) -> TaskTemplate:
        try:
            return TaskTemplate.objects.get(id=template_id, restaurant_id=self.restaurant_id, is_active=True)
        except (TaskTemplate.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFound(f"Task template {template_id} not found.")

    def _create_task(self, values: Dict[str, Any], actor=None) -> Task:
        template = self._get_template(values['template_id']) if values.get('template_id') else None

        def pick(field, template_field=None, default=None):
            value = values.get(field)
            if value not in (None, ''):
                return value
            if template is not None:
                template_value = getattr(template, template_field or field)
                if template_value not in (None, ''):
                    return template_value
            return default

        title = pick('title', 'name').strip()
        scheduled_for = values.get('scheduled_for')
        duration = pick('estimated_duration_minutes')
        due_date = values.get('due_date')
        if due_date is None and scheduled_for and duration:
            due_date = scheduled_for + timedelta(minutes=duration)

        return Task.objects.create(
            restaurant_id=self.restaurant_id,
            template=template,
            title=title,
            title_fr=pick('title_fr', 'name_fr', default=title),
            description=pick('description', default=''),
            task_type=pick('task_type', default='CUSTOM'),
            priority=pick('priority', default='MEDIUM'),
            required_skills=list(pick('required_skills', default=[])),
            location=pick('location'),
            minimum_role=pick('minimum_role', default='STAFF'),
            scheduled_for=scheduled_for,
            due_date=due_date,
            estimated_duration_minutes=duration,
            metadata=dict(values.get('metadata') or {}),
            created_by=actor if getattr(actor, 'pk', None) else None,
        )

    def schedule_task(self, data: Dict[str, Any], actor=None) -> Dict[str, Any]:
        """
        Create one task, optionally binding it right away.

        ``assign_to`` assigns manually; ``auto_assign`` runs automatic
        assignment, and an empty candidate pool leaves the task pending with
        ``auto_assign_requested`` recorded in its metadata.
        """
        serializer = ScheduleTaskSerializer(data=data)
        serializer.is_valid(raise_exception=True)
        values = serializer.validated_data

        result = {'task': None, 'assignment': None, 'auto_assign': None}
        with transaction.atomic():
            task = self._create_task(values, actor=actor)

            if values.get('assign_to'):
                assigned = self.assignment_service.assign_task(
                    task.id, values['assign_to'], notes=values.get('notes'), actor=actor
                )
                result['assignment'] = assigned['assignment']
            elif values.get('auto_assign'):
                outcome = self.assignment_service.auto_assign_task(
                    task.id, values.get('max_candidates'), actor=actor
                )
                if outcome['outcome'] == OUTCOME_NO_ELIGIBLE_CANDIDATES:
                    task.metadata = {**task.metadata, 'auto_assign_requested': True}
                    task.save(update_fields=['metadata', 'updated_at'])
                result['assignment'] = outcome['assignment']
                result['auto_assign'] = outcome

            task.refresh_from_db()
            result['task'] = task

        logger.info(f"Scheduled task {task.id} '{task.title}' ({task.status}) in restaurant {self.restaurant_id}")
        return result

    def bulk_schedule_tasks(self, items: Iterable[Dict[str, Any]], defaults: Optional[Dict[str, Any]] = None,
                            actor=None, cancel_event=None) -> Dict[str, Any]:
        """
        Schedule up to BULK_SCHEDULE_LIMIT tasks. Partial success is success:
        every item is attempted independently and reported by its 0-based index.
        A set ``cancel_event`` stops the run before the next item.
        """
        limit = self.engine_settings['BULK_SCHEDULE_LIMIT']
        if not isinstance(items, (list, tuple)) or not items:
            raise TaskValidationError("tasks must be a non-empty list.")
        if len(items) > limit:
            raise BulkLimitExceeded(f"Maximum {limit} tasks allowed per bulk operation; got {len(items)}.")
        if defaults is not None and not isinstance(defaults, dict):
            raise TaskValidationError("default_settings must be an object.")
        defaults = defaults or {}

        results = {
            'successful': [],
            'failed': [],
            'total_requested': len(items),
            'successful_count': 0,
            'failed_count': 0,
            'cancelled': False,
            'remaining': 0,
        }

        for index, item in enumerate(items):
            if cancel_event is not None and cancel_event.is_set():
                results['cancelled'] = True
                results['remaining'] = len(items) - index
                logger.info(f"Bulk scheduling cancelled before item {index}; {results['remaining']} left unprocessed")
                break

            if not isinstance(item, dict):
                results['failed'].append({'index': index, 'title': None, 'error': 'Item must be an object.'})
                continue

            try:
                outcome = self.schedule_task({**defaults, **item}, actor=actor)
            except APIException as e:
                results['failed'].append({
                    'index': index,
                    'title': item.get('title'),
                    'error': error_message(e),
                    'code': getattr(e, 'default_code', 'error'),
                })
                continue
            except Exception as e:
                logger.exception(f"Unexpected error scheduling bulk item {index}")
                results['failed'].append({'index': index, 'title': item.get('title'), 'error': str(e), 'code': 'error'})
                continue

            task = outcome['task']
            results['successful'].append({
                'index': index,
                'task_id': str(task.id),
                'title': task.title,
                'status': task.status,
                'assigned_to': str(task.assigned_to_id) if task.assigned_to_id else None,
            })

        results['successful_count'] = len(results['successful'])
        results['failed_count'] = len(results['failed'])
        results['success'] = results['successful_count'] > 0

        logger.info(
            f"Bulk scheduling for restaurant {self.restaurant_id}: "
            f"{results['successful_count']} created, {results['failed_count']} failed "
            f"of {results['total_requested']}"
        )
        return results
