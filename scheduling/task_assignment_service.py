"""
Task Assignment Service

Binds pending tasks to staff members, either manually or by ranking the
restaurant's staff pool with the candidate scorer:
- Skill matching against the task's required skills
- Roster availability and spare capacity on the task date
- Current workload (live count of active tasks)
- Work zone vs. task location

A task is bound with a conditional update that only succeeds while the task
is still pending and unassigned, so concurrent attempts produce exactly one
winner; the others get TaskAlreadyAssigned.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from accounts.models import CustomUser, StaffAvailability
from core.exceptions import (
    InvalidAssignment,
    InvalidStatusTransition,
    ResourceNotFound,
    TaskAlreadyAssigned,
    TaskValidationError,
)
from core.timezone_utils import get_restaurant_timezone, to_local
from notifications.dispatcher import AssignmentEvent
from .models import Task, TaskAssignment
from .scoring import AvailabilityWindow, StaffCandidate, TaskRequirements, rank_candidates

logger = logging.getLogger(__name__)

OUTCOME_ASSIGNED = 'ASSIGNED'
OUTCOME_NO_ELIGIBLE_CANDIDATES = 'NO_ELIGIBLE_CANDIDATES'


def _staff_name(user):
    return f"{user.first_name} {user.last_name}".strip() or user.email


def _window_for(entry: StaffAvailability) -> AvailabilityWindow:
    return AvailabilityWindow(
        is_available=entry.is_available,
        shift_start=entry.shift_start,
        shift_end=entry.shift_end,
        max_concurrent_tasks=entry.max_concurrent_tasks,
    )


class TaskAssignmentService:
    """Manual and automatic task assignment scoped to one restaurant"""

    def __init__(self, restaurant_id, dispatcher=None):
        self.restaurant_id = str(restaurant_id)
        self.dispatcher = dispatcher
        self.engine_settings = settings.TASK_ENGINE

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _get_task(self, task_id) -> Task:
        try:
            return Task.objects.select_related('restaurant').get(id=task_id, restaurant_id=self.restaurant_id)
        except (Task.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFound(f"Task {task_id} not found.")

    def _get_staff(self, staff_id) -> CustomUser:
        try:
            return CustomUser.objects.get(id=staff_id)
        except (CustomUser.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFound(f"Staff member {staff_id} not found.")

    def _candidate_limit(self, max_candidates) -> int:
        if max_candidates is None:
            return self.engine_settings['DEFAULT_MAX_CANDIDATES']
        try:
            limit = int(max_candidates)
        except (TypeError, ValueError):
            raise TaskValidationError("max_candidates must be an integer.")
        upper = self.engine_settings['MAX_CANDIDATES_LIMIT']
        if limit < 1 or limit > upper:
            raise TaskValidationError(f"max_candidates must be between 1 and {upper}.")
        return limit

    def validate_assignee(self, task: Task, staff: CustomUser):
        """Raise InvalidAssignment unless staff may take this task."""
        if not staff.is_active:
            raise InvalidAssignment(f"Staff member {staff.email} is inactive.")
        if str(staff.restaurant_id) != str(task.restaurant_id):
            raise InvalidAssignment("Staff member belongs to a different restaurant.")
        if not staff.has_minimum_role(task.minimum_role):
            raise InvalidAssignment(
                f"Task requires at least {task.minimum_role}; {staff.email} is {staff.role}."
            )

    @staticmethod
    def _ensure_unassigned(task: Task):
        if task.assigned_to_id or task.status != Task.STATUS_PENDING:
            raise TaskAlreadyAssigned(f"Task {task.id} is already {task.status.lower()}.")

    # ------------------------------------------------------------------
    # Candidate pool
    # ------------------------------------------------------------------
    def _task_local_context(self, task: Task):
        tz_name = get_restaurant_timezone(task.restaurant)
        if task.scheduled_for:
            local = to_local(task.scheduled_for, tz_name)
            return local.date(), local.time()
        return to_local(timezone.now(), tz_name).date(), None

    def active_task_counts(self, user_ids) -> Dict[str, int]:
        rows = (
            Task.objects.filter(
                restaurant_id=self.restaurant_id,
                assigned_to_id__in=user_ids,
                status__in=Task.ACTIVE_STATUSES,
            )
            .values('assigned_to_id')
            .annotate(active=Count('id'))
        )
        return {str(row['assigned_to_id']): row['active'] for row in rows}

    @staticmethod
    def _roster_window(today, yesterday, local_time) -> Optional[AvailabilityWindow]:
        """Today's roster entry, or yesterday's overnight shift when it runs past ``local_time``."""
        if (
            yesterday is not None
            and local_time is not None
            and yesterday.shift_start and yesterday.shift_end
            and yesterday.shift_end < yesterday.shift_start
            and local_time <= yesterday.shift_end
        ):
            carried = AvailabilityWindow(
                is_available=yesterday.is_available,
                shift_end=yesterday.shift_end,
                max_concurrent_tasks=yesterday.max_concurrent_tasks,
            )
            if today is None or not today.is_available or not _window_for(today).covers(local_time):
                return carried
        if today is None:
            return None
        return _window_for(today)

    def build_candidate_pool(self, task: Task) -> List[StaffCandidate]:
        """Fresh candidate views for the task's restaurant; workload is counted live."""
        target_date, local_time = self._task_local_context(task)
        previous_date = target_date - timedelta(days=1)

        staff = list(
            CustomUser.objects.filter(restaurant_id=self.restaurant_id, is_active=True)
            .prefetch_related('skills')
        )
        user_ids = [user.id for user in staff]
        workloads = self.active_task_counts(user_ids)
        roster = {
            (str(entry.user_id), entry.date): entry
            for entry in StaffAvailability.objects.filter(
                user_id__in=user_ids, date__in=[previous_date, target_date]
            )
        }

        pool = []
        for user in staff:
            window = self._roster_window(
                roster.get((str(user.id), target_date)),
                roster.get((str(user.id), previous_date)),
                local_time,
            )
            pool.append(StaffCandidate(
                staff_id=str(user.id),
                name=_staff_name(user),
                role=user.role,
                restaurant_id=str(user.restaurant_id),
                is_active=user.is_active,
                skills=frozenset(skill.skill_name for skill in user.skills.all()),
                workload=workloads.get(str(user.id), 0),
                location=user.work_zone,
                availability=window,
            ))
        return pool

    def rank_for_task(self, task: Task, limit: int) -> List[Dict]:
        _, local_time = self._task_local_context(task)
        requirements = TaskRequirements(
            restaurant_id=str(task.restaurant_id),
            required_skills=tuple(task.required_skills or ()),
            location=task.location,
            minimum_role=task.minimum_role,
            local_time=local_time,
        )
        return rank_candidates(
            requirements,
            self.build_candidate_pool(task),
            limit=limit,
            weights=self.engine_settings.get('SCORING_WEIGHTS'),
        )

    def get_assignment_recommendations(self, task_id, limit=None) -> List[Dict]:
        """Ranked candidates for a task without binding anyone."""
        task = self._get_task(task_id)
        return self.rank_for_task(task, self._candidate_limit(limit))

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------
    def _refresh_workload_cache(self, staff: CustomUser, task: Task):
        target_date, _ = self._task_local_context(task)
        entry = StaffAvailability.objects.filter(user=staff, date=target_date).first()
        if entry is None:
            return
        active = self.active_task_counts([staff.id]).get(str(staff.id), 0)
        percentage = min(100, round(100 * active / max(entry.max_concurrent_tasks, 1)))
        StaffAvailability.objects.filter(id=entry.id).update(current_workload_percentage=percentage)

    def _bind(self, task: Task, staff: CustomUser, method: str, score=None, notes=None, actor=None) -> TaskAssignment:
        now = timezone.now()
        assigner = actor if getattr(actor, 'pk', None) else None

        with transaction.atomic():
            updated = Task.objects.filter(
                id=task.id,
                assigned_to__isnull=True,
                status=Task.STATUS_PENDING,
            ).update(
                assigned_to=staff,
                assigned_by=assigner,
                assigned_at=now,
                status=Task.STATUS_ASSIGNED,
                updated_at=now,
            )
            if not updated:
                raise TaskAlreadyAssigned(f"Task {task.id} was assigned by another request.")

            TaskAssignment.objects.filter(task_id=task.id, is_current=True).update(is_current=False)
            assignment = TaskAssignment.objects.create(
                task_id=task.id,
                user=staff,
                assigned_by=assigner,
                method=method,
                assignment_score=score,
                is_current=True,
                notes=notes,
            )
            self._refresh_workload_cache(staff, task)

            if self.dispatcher is not None:
                event = AssignmentEvent(
                    task_id=str(task.id),
                    assignee_id=str(staff.id),
                    method=method,
                    score=float(score) if score is not None else None,
                )
                transaction.on_commit(lambda: self.dispatcher.dispatch_assignment(event))

        task.refresh_from_db()
        logger.info(
            f"Task {task.id} assigned to {staff.email} ({method.lower()}"
            + (f", score {score})" if score is not None else ")")
        )
        return assignment

    def assign_task(self, task_id, staff_id, notes=None, actor=None) -> Dict:
        """
        Manually assign a task.

        Raises:
            ResourceNotFound: task or staff member does not exist
            TaskAlreadyAssigned: task already has an assignee (including a lost race)
            InvalidAssignment: staff inactive, in another restaurant or below the minimum role
        """
        task = self._get_task(task_id)
        self._ensure_unassigned(task)
        staff = self._get_staff(staff_id)
        self.validate_assignee(task, staff)

        assignment = self._bind(task, staff, TaskAssignment.METHOD_MANUAL, notes=notes, actor=actor)
        return {'task': task, 'assignment': assignment}

    def auto_assign_task(self, task_id, max_candidates=None, actor=None) -> Dict:
        """
        Assign the top-ranked candidate. An empty pool is a result, not an error:
        the outcome is NO_ELIGIBLE_CANDIDATES and the task stays pending.
        """
        limit = self._candidate_limit(max_candidates)
        task = self._get_task(task_id)
        self._ensure_unassigned(task)

        ranked = self.rank_for_task(task, limit)
        if not ranked:
            logger.warning(f"No eligible staff found for task {task.id} in restaurant {self.restaurant_id}")
            return {
                'outcome': OUTCOME_NO_ELIGIBLE_CANDIDATES,
                'task': task,
                'assignment': None,
                'assigned_staff_id': None,
                'score': None,
                'confidence': None,
                'ranked_candidates': [],
            }

        top = ranked[0]
        staff = self._get_staff(top['staff_id'])
        assignment = self._bind(
            task,
            staff,
            TaskAssignment.METHOD_AUTOMATIC,
            score=Decimal(str(top['score'])),
            notes=f"Auto-assigned ({top['confidence']} confidence)",
            actor=actor,
        )
        return {
            'outcome': OUTCOME_ASSIGNED,
            'task': task,
            'assignment': assignment,
            'assigned_staff_id': top['staff_id'],
            'score': top['score'],
            'confidence': top['confidence'],
            'ranked_candidates': ranked,
        }

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def update_task_status(self, task_id, new_status, actor=None) -> Task:
        """Move an assigned task through in_progress to completed or failed."""
        task = self._get_task(task_id)
        new_status = str(new_status or '').upper()

        if new_status not in dict(Task.STATUS_CHOICES):
            raise TaskValidationError(f"Unknown status '{new_status}'.")
        if new_status == Task.STATUS_ASSIGNED:
            raise InvalidStatusTransition("Tasks become ASSIGNED through assignment, not a status update.")
        if not task.can_transition_to(new_status):
            raise InvalidStatusTransition(f"Cannot move task from {task.status} to {new_status}.")

        now = timezone.now()
        fields = {'status': new_status, 'updated_at': now}
        if new_status == Task.STATUS_IN_PROGRESS:
            fields['started_at'] = now
        if new_status in Task.TERMINAL_STATUSES:
            fields['completed_at'] = now

        updated = Task.objects.filter(id=task.id, status=task.status).update(**fields)
        if not updated:
            raise InvalidStatusTransition(f"Task {task.id} changed status while updating; reload and retry.")

        task.refresh_from_db()
        if task.is_terminal and task.assigned_to_id:
            self._refresh_workload_cache(task.assigned_to, task)

        logger.info(f"Task {task.id} moved to {new_status} by {getattr(actor, 'email', 'system')}")
        return task
