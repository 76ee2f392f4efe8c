from datetime import timedelta

from rest_framework.test import APITestCase, APIClient
from rest_framework import status
from django.utils import timezone

from scheduling.models import Task, TaskRecurrence
from scheduling.tests.helpers import make_restaurant, make_staff, make_task, make_template


class TaskApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.restaurant = make_restaurant()
        self.manager = make_staff(self.restaurant, role='MANAGER', first_name='Admin')
        self.cook = make_staff(self.restaurant, role='CHEF', skills=['grill'])
        self.client.force_authenticate(user=self.manager)
        self.base_url = "/api/tasks/"

    def test_manual_assign_then_conflict(self):
        task = make_task(self.restaurant)
        payload = {'task_id': str(task.id), 'staff_id': str(self.cook.id), 'notes': 'Urgent'}

        r1 = self.client.post(f"{self.base_url}assign/", payload, format="json")
        self.assertEqual(r1.status_code, status.HTTP_200_OK)
        self.assertEqual(r1.json()['task']['status'], 'ASSIGNED')
        self.assertEqual(r1.json()['assignment']['method'], 'MANUAL')

        r2 = self.client.post(f"{self.base_url}assign/", payload, format="json")
        self.assertEqual(r2.status_code, status.HTTP_409_CONFLICT)
        self.assertIn("detail", r2.json())

    def test_assign_cross_tenant_staff_is_400(self):
        task = make_task(self.restaurant)
        outsider = make_staff(make_restaurant())
        resp = self.client.post(
            f"{self.base_url}assign/", {'task_id': str(task.id), 'staff_id': str(outsider.id)}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assign_unknown_task_is_404(self):
        resp = self.client.post(
            f"{self.base_url}assign/",
            {'task_id': '00000000-0000-0000-0000-000000000000', 'staff_id': str(self.cook.id)},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_cannot_assign(self):
        task = make_task(self.restaurant)
        self.client.force_authenticate(user=self.cook)
        resp = self.client.post(
            f"{self.base_url}assign/", {'task_id': str(task.id), 'staff_id': str(self.cook.id)}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_auto_assign_returns_ranking(self):
        task = make_task(self.restaurant, required_skills=['grill'])
        resp = self.client.post(f"{self.base_url}assign/auto/", {'task_id': str(task.id)}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual(data['outcome'], 'ASSIGNED')
        self.assertEqual(data['assigned_staff_id'], str(self.cook.id))
        self.assertEqual(data['ranked_candidates'][0]['staff_id'], str(self.cook.id))
        self.assertIn(data['confidence'], ('high', 'medium', 'low'))

    def test_auto_assign_empty_pool_is_200(self):
        task = make_task(self.restaurant, required_skills=['sommelier'])
        resp = self.client.post(f"{self.base_url}assign/auto/", {'task_id': str(task.id)}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()['outcome'], 'NO_ELIGIBLE_CANDIDATES')
        self.assertEqual(resp.json()['ranked_candidates'], [])

    def test_candidates_endpoint(self):
        task = make_task(self.restaurant)
        resp = self.client.get(f"{self.base_url}{task.id}/candidates/?limit=1")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.json()['candidates']), 1)

    def test_assignee_moves_own_task_forward(self):
        task = make_task(self.restaurant, status=Task.STATUS_ASSIGNED, assigned_to=self.cook)
        other = make_staff(self.restaurant)

        self.client.force_authenticate(user=other)
        resp = self.client.post(f"{self.base_url}{task.id}/status/", {'status': 'IN_PROGRESS'}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.cook)
        resp = self.client.post(f"{self.base_url}{task.id}/status/", {'status': 'in_progress'}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()['status'], 'IN_PROGRESS')

        resp = self.client.post(f"{self.base_url}{task.id}/status/", {'status': 'PENDING'}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_schedule_single_task(self):
        resp = self.client.post(f"{self.base_url}schedule/", {'title': 'Polish glasses'}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.json()['task']['status'], 'PENDING')

        resp = self.client.post(f"{self.base_url}schedule/", {'description': 'no title'}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('title', resp.json())

    def test_bulk_schedule(self):
        tasks = [{'title': f"Task {i}"} for i in range(10)]
        tasks[3] = {'description': 'missing title'}
        tasks[7] = {'description': 'missing title'}
        resp = self.client.post(
            f"{self.base_url}schedule/bulk/",
            {'tasks': tasks, 'default_settings': {'priority': 'HIGH'}},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual((data['successful_count'], data['failed_count']), (8, 2))
        self.assertEqual([f['index'] for f in data['failed']], [3, 7])
        self.assertEqual(Task.objects.filter(priority='HIGH').count(), 8)

    def test_bulk_over_limit_is_400(self):
        tasks = [{'title': f"Task {i}"} for i in range(51)]
        resp = self.client.post(f"{self.base_url}schedule/bulk/", {'tasks': tasks}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Task.objects.exists())

    def test_list_is_scoped_to_restaurant(self):
        make_task(self.restaurant, title='Mine')
        make_task(make_restaurant(), title='Theirs')
        resp = self.client.get(self.base_url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([t['title'] for t in resp.json()], ['Mine'])


class RecurrenceApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.restaurant = make_restaurant()
        self.manager = make_staff(self.restaurant, role='ADMIN')
        self.template = make_template(self.restaurant)
        self.client.force_authenticate(user=self.manager)
        self.base_url = "/api/tasks/recurrences/"

    def test_create_list_and_deactivate(self):
        payload = {
            'template_id': str(self.template.id),
            'recurrence_pattern': {'type': 'weekly', 'days_of_week': [0, 3], 'hour': 7},
            'max_runs': 10,
        }
        resp = self.client.post(self.base_url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        recurrence_id = resp.json()['id']
        self.assertEqual(resp.json()['timezone'], 'Asia/Bangkok')
        self.assertIsNotNone(resp.json()['next_run_at'])

        listed = self.client.get(self.base_url)
        self.assertEqual(len(listed.json()), 1)

        resp = self.client.post(f"{self.base_url}{recurrence_id}/deactivate/", format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(resp.json()['is_active'])

    def test_custom_pattern_is_400(self):
        payload = {'template_id': str(self.template.id), 'recurrence_pattern': {'type': 'custom'}}
        resp = self.client.post(self.base_url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(TaskRecurrence.objects.exists())

    def test_preview(self):
        payload = {
            'recurrence_pattern': {'type': 'daily', 'hour': 9, 'timezone': 'UTC'},
            'reference': '2026-03-02T10:00:00Z',
            'count': 3,
        }
        resp = self.client.post(f"{self.base_url}preview/", payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        runs = resp.json()['next_runs']
        self.assertEqual(len(runs), 3)
        self.assertTrue(runs[0].startswith('2026-03-03T09:00:00'))

    def test_run_now(self):
        TaskRecurrence.objects.create(
            restaurant=self.restaurant, template=self.template, name='Daily',
            recurrence_pattern={'type': 'daily', 'hour': 9, 'timezone': 'UTC'}, timezone='UTC',
            next_run_at=timezone.now() - timedelta(minutes=1),
        )
        resp = self.client.post(f"{self.base_url}run/", format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()['created'], 1)
