from datetime import datetime, time, timedelta, timezone as dt_timezone
from unittest.mock import MagicMock, patch

from django.test import TestCase

from accounts.models import StaffAvailability
from core.exceptions import (
    InvalidAssignment,
    InvalidStatusTransition,
    ResourceNotFound,
    TaskAlreadyAssigned,
    TaskValidationError,
)
from notifications.dispatcher import AssignmentEvent
from scheduling.models import Task, TaskAssignment
from scheduling.task_assignment_service import (
    OUTCOME_ASSIGNED,
    OUTCOME_NO_ELIGIBLE_CANDIDATES,
    TaskAssignmentService,
)
from scheduling.tests.helpers import (
    TASK_DATE,
    make_active_tasks,
    make_availability,
    make_restaurant,
    make_staff,
    make_task,
)


class ManualAssignmentTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.manager = make_staff(self.restaurant, role='MANAGER')
        self.cook = make_staff(self.restaurant, role='CHEF', skills=['grill'])
        self.dispatcher = MagicMock()
        self.service = TaskAssignmentService(self.restaurant.id, dispatcher=self.dispatcher)
        self.task = make_task(self.restaurant)

    def test_assign_binds_task_and_records_history(self):
        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.assign_task(self.task.id, self.cook.id, notes="Before lunch", actor=self.manager)

        task = result['task']
        self.assertEqual(task.status, Task.STATUS_ASSIGNED)
        self.assertEqual(task.assigned_to, self.cook)
        self.assertEqual(task.assigned_by, self.manager)
        self.assertIsNotNone(task.assigned_at)

        assignment = result['assignment']
        self.assertTrue(assignment.is_current)
        self.assertEqual(assignment.method, TaskAssignment.METHOD_MANUAL)
        self.assertEqual(assignment.notes, "Before lunch")
        self.assertIsNone(assignment.assignment_score)

        self.dispatcher.dispatch_assignment.assert_called_once_with(
            AssignmentEvent(task_id=str(self.task.id), assignee_id=str(self.cook.id), method='MANUAL', score=None)
        )

    def test_second_assignment_is_a_conflict(self):
        other = make_staff(self.restaurant)
        self.service.assign_task(self.task.id, self.cook.id)

        with self.assertRaises(TaskAlreadyAssigned):
            self.service.assign_task(self.task.id, other.id)

        self.task.refresh_from_db()
        self.assertEqual(self.task.assigned_to, self.cook)
        self.assertEqual(TaskAssignment.objects.filter(task=self.task, is_current=True).count(), 1)

    def test_stale_read_loses_conditional_update(self):
        """Both requests read the task as pending; only the first write wins."""
        stale = Task.objects.get(id=self.task.id)
        other = make_staff(self.restaurant)
        self.service.assign_task(self.task.id, self.cook.id)

        with patch.object(TaskAssignmentService, '_get_task', return_value=stale):
            with self.assertRaises(TaskAlreadyAssigned):
                self.service.assign_task(self.task.id, other.id)

        self.task.refresh_from_db()
        self.assertEqual(self.task.assigned_to, self.cook)
        self.assertEqual(TaskAssignment.objects.filter(task=self.task).count(), 1)
        self.assertEqual(TaskAssignment.objects.get(task=self.task, is_current=True).user, self.cook)

    def test_missing_task_or_staff_is_not_found(self):
        with self.assertRaises(ResourceNotFound):
            self.service.assign_task('00000000-0000-0000-0000-000000000000', self.cook.id)
        with self.assertRaises(ResourceNotFound):
            self.service.assign_task(self.task.id, '00000000-0000-0000-0000-000000000000')

    def test_task_from_other_restaurant_is_not_found(self):
        foreign_task = make_task(make_restaurant())
        with self.assertRaises(ResourceNotFound):
            self.service.assign_task(foreign_task.id, self.cook.id)

    def test_invalid_assignees_are_rejected(self):
        cases = {
            'inactive': make_staff(self.restaurant, is_active=False),
            'cross-tenant': make_staff(make_restaurant()),
        }
        for reason, staff in cases.items():
            with self.subTest(reason=reason):
                with self.assertRaises(InvalidAssignment):
                    self.service.assign_task(self.task.id, staff.id)

        supervised = make_task(self.restaurant, minimum_role='SUPERVISOR')
        with self.assertRaises(InvalidAssignment):
            self.service.assign_task(supervised.id, self.cook.id)

        self.task.refresh_from_db()
        self.assertEqual(self.task.status, Task.STATUS_PENDING)
        self.assertFalse(TaskAssignment.objects.exists())

    def test_workload_cache_is_recomputed(self):
        availability = make_availability(self.cook, max_concurrent_tasks=4)
        make_active_tasks(self.restaurant, self.cook, 1)

        self.service.assign_task(self.task.id, self.cook.id)

        availability.refresh_from_db()
        self.assertEqual(availability.current_workload_percentage, 50)


class AutoAssignmentTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.dispatcher = MagicMock()
        self.service = TaskAssignmentService(self.restaurant.id, dispatcher=self.dispatcher)

    def test_picks_best_candidate_and_returns_ranking(self):
        griller = make_staff(self.restaurant, skills=['grill'], work_zone='kitchen:line')
        waiter = make_staff(self.restaurant, role='WAITER', skills=['grill'], work_zone='floor')
        make_availability(griller)
        make_availability(waiter)
        task = make_task(self.restaurant, required_skills=['grill'], location='kitchen:line')

        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.auto_assign_task(task.id)

        self.assertEqual(result['outcome'], OUTCOME_ASSIGNED)
        self.assertEqual(result['assigned_staff_id'], str(griller.id))
        self.assertEqual(result['score'], 100.0)
        self.assertEqual(result['confidence'], 'high')
        self.assertEqual([c['staff_id'] for c in result['ranked_candidates']], [str(griller.id), str(waiter.id)])

        assignment = TaskAssignment.objects.get(task=task, is_current=True)
        self.assertEqual(assignment.method, TaskAssignment.METHOD_AUTOMATIC)
        self.assertEqual(float(assignment.assignment_score), 100.0)
        event = self.dispatcher.dispatch_assignment.call_args[0][0]
        self.assertEqual(event.method, 'AUTOMATIC')
        self.assertEqual(event.score, 100.0)

    def test_prefers_staff_with_fewer_active_tasks(self):
        busy = make_staff(self.restaurant, skills=['grill'])
        idle = make_staff(self.restaurant, skills=['grill'])
        make_active_tasks(self.restaurant, busy, 3)
        task = make_task(self.restaurant, required_skills=['grill'])

        result = self.service.auto_assign_task(task.id)

        self.assertEqual(result['assigned_staff_id'], str(idle.id))
        busy_entry = next(c for c in result['ranked_candidates'] if c['staff_id'] == str(busy.id))
        self.assertEqual(busy_entry['workload'], 3)

    def test_unavailable_staff_are_not_candidates(self):
        off = make_staff(self.restaurant, skills=['grill'])
        make_availability(off, is_available=False)
        on = make_staff(self.restaurant, skills=['grill'])
        task = make_task(self.restaurant, required_skills=['grill'])

        result = self.service.auto_assign_task(task.id)

        self.assertEqual(result['assigned_staff_id'], str(on.id))
        self.assertNotIn(str(off.id), [c['staff_id'] for c in result['ranked_candidates']])

    def test_empty_pool_is_a_result_not_an_error(self):
        make_staff(self.restaurant, skills=['grill'])
        task = make_task(self.restaurant, required_skills=['sommelier'])

        with self.assertLogs('scheduling.task_assignment_service', level='WARNING'):
            result = self.service.auto_assign_task(task.id)

        self.assertEqual(result['outcome'], OUTCOME_NO_ELIGIBLE_CANDIDATES)
        self.assertEqual(result['ranked_candidates'], [])
        self.assertIsNone(result['assigned_staff_id'])
        task.refresh_from_db()
        self.assertEqual(task.status, Task.STATUS_PENDING)
        self.dispatcher.dispatch_assignment.assert_not_called()

    def test_already_assigned_task_is_a_conflict(self):
        staff = make_staff(self.restaurant)
        task = make_task(self.restaurant, status=Task.STATUS_ASSIGNED, assigned_to=staff)
        with self.assertRaises(TaskAlreadyAssigned):
            self.service.auto_assign_task(task.id)

    def test_max_candidates_is_bounded(self):
        task = make_task(self.restaurant)
        for bad in (0, 11, 'many'):
            with self.subTest(max_candidates=bad):
                with self.assertRaises(TaskValidationError):
                    self.service.auto_assign_task(task.id, max_candidates=bad)

    def test_overnight_shift_covers_tasks_on_both_dates(self):
        closer = make_staff(self.restaurant)
        day_cook = make_staff(self.restaurant)
        monday, tuesday = TASK_DATE, TASK_DATE + timedelta(days=1)
        make_availability(closer, date=monday, shift_start=time(22, 0), shift_end=time(6, 0))
        make_availability(closer, date=tuesday)
        make_availability(day_cook, date=tuesday)

        # 23:30 Monday and 01:00 Tuesday in Bangkok
        late = make_task(self.restaurant, scheduled_for=datetime(2026, 5, 4, 16, 30, tzinfo=dt_timezone.utc))
        early = make_task(self.restaurant, scheduled_for=datetime(2026, 5, 4, 18, 0, tzinfo=dt_timezone.utc))

        late_ids = [c['staff_id'] for c in self.service.get_assignment_recommendations(late.id)]
        early_ids = [c['staff_id'] for c in self.service.get_assignment_recommendations(early.id)]

        self.assertIn(str(closer.id), late_ids)
        self.assertEqual(early_ids, [str(closer.id)])

    def test_recommendations_do_not_bind(self):
        for _ in range(4):
            make_staff(self.restaurant)
        task = make_task(self.restaurant)

        ranked = self.service.get_assignment_recommendations(task.id, limit=3)

        self.assertEqual(len(ranked), 3)
        task.refresh_from_db()
        self.assertIsNone(task.assigned_to)


class StatusTransitionTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.staff = make_staff(self.restaurant)
        self.service = TaskAssignmentService(self.restaurant.id)
        self.task = make_task(self.restaurant)

    def test_full_lifecycle(self):
        self.service.assign_task(self.task.id, self.staff.id)

        started = self.service.update_task_status(self.task.id, 'in_progress', actor=self.staff)
        self.assertEqual(started.status, Task.STATUS_IN_PROGRESS)
        self.assertIsNotNone(started.started_at)

        done = self.service.update_task_status(self.task.id, Task.STATUS_COMPLETED)
        self.assertEqual(done.status, Task.STATUS_COMPLETED)
        self.assertIsNotNone(done.completed_at)

        with self.assertRaises(InvalidStatusTransition):
            self.service.update_task_status(self.task.id, Task.STATUS_IN_PROGRESS)
        with self.assertRaises(TaskAlreadyAssigned):
            self.service.assign_task(self.task.id, self.staff.id)

    def test_cannot_skip_assignment(self):
        for new_status in (Task.STATUS_IN_PROGRESS, Task.STATUS_COMPLETED, Task.STATUS_ASSIGNED):
            with self.subTest(new_status=new_status):
                with self.assertRaises(InvalidStatusTransition):
                    self.service.update_task_status(self.task.id, new_status)

    def test_unknown_status_is_validation_error(self):
        with self.assertRaises(TaskValidationError):
            self.service.update_task_status(self.task.id, 'PAUSED')

    def test_completion_releases_workload(self):
        availability = make_availability(self.staff, max_concurrent_tasks=2)
        self.service.assign_task(self.task.id, self.staff.id)
        availability.refresh_from_db()
        self.assertEqual(availability.current_workload_percentage, 50)

        self.service.update_task_status(self.task.id, Task.STATUS_IN_PROGRESS)
        self.service.update_task_status(self.task.id, Task.STATUS_FAILED)

        self.assertEqual(StaffAvailability.objects.get(id=availability.id).current_workload_percentage, 0)
