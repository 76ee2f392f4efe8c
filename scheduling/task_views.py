"""
Task assignment, scheduling and recurrence endpoints for the manager dashboard.
Thin wrappers: request validation via serializers, work done by the services,
errors raised as APIException subclasses and rendered by DRF.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework import status, permissions
from django.utils import timezone

from accounts.permissions import IsManagerOrAdmin
from core.exceptions import ResourceNotFound, TaskValidationError
from core.timezone_utils import get_restaurant_timezone
from notifications.dispatcher import NotificationDispatcher
from .models import Task, TaskRecurrence
from .recurrence import upcoming_runs
from .recurrence_service import RecurrenceService
from .serializers import (
    AssignTaskSerializer,
    AutoAssignTaskSerializer,
    BulkScheduleSerializer,
    RecurrenceCreateSerializer,
    RecurrencePreviewSerializer,
    TaskAssignmentSerializer,
    TaskRecurrenceSerializer,
    TaskSerializer,
    TaskStatusSerializer,
)
from .task_assignment_service import TaskAssignmentService
from .task_scheduling_service import TaskSchedulingService


def _restaurant_id(user):
    if not getattr(user, 'restaurant_id', None):
        raise TaskValidationError("User is not associated with a restaurant.")
    return user.restaurant_id


def _assignment_service(request):
    return TaskAssignmentService(_restaurant_id(request.user), dispatcher=NotificationDispatcher())


def _scheduling_service(request):
    return TaskSchedulingService(_restaurant_id(request.user), dispatcher=NotificationDispatcher())


def _assign_payload(result):
    return {
        'task': TaskSerializer(result['task']).data,
        'assignment': TaskAssignmentSerializer(result['assignment']).data if result.get('assignment') else None,
    }


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def task_list(request):
    """List the restaurant's tasks, optionally filtered by ?status= and ?assigned_to="""
    qs = Task.objects.filter(restaurant_id=_restaurant_id(request.user)).select_related('assigned_to')
    status_filter = request.query_params.get('status')
    if status_filter:
        qs = qs.filter(status=status_filter.upper())
    assigned_to = request.query_params.get('assigned_to')
    if assigned_to:
        qs = qs.filter(assigned_to_id=assigned_to)
    return Response(TaskSerializer(qs[:200], many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def task_detail(request, task_id):
    task = Task.objects.filter(id=task_id, restaurant_id=_restaurant_id(request.user)).first()
    if task is None:
        raise ResourceNotFound(f"Task {task_id} not found.")
    return Response(TaskSerializer(task).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def assign_task(request):
    serializer = AssignTaskSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = _assignment_service(request).assign_task(
        data['task_id'], data['staff_id'], notes=data.get('notes'), actor=request.user
    )
    return Response(_assign_payload(result), status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def auto_assign_task(request):
    serializer = AutoAssignTaskSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = _assignment_service(request).auto_assign_task(
        data['task_id'], data.get('max_candidates'), actor=request.user
    )
    payload = _assign_payload(result)
    payload.update({
        'outcome': result['outcome'],
        'assigned_staff_id': result['assigned_staff_id'],
        'score': result['score'],
        'confidence': result['confidence'],
        'ranked_candidates': result['ranked_candidates'],
    })
    return Response(payload, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def task_candidates(request, task_id):
    candidates = _assignment_service(request).get_assignment_recommendations(
        task_id, request.query_params.get('limit')
    )
    return Response({'task_id': str(task_id), 'candidates': candidates})


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def update_task_status(request, task_id):
    """Assignees move their own tasks forward; managers may move any task."""
    serializer = TaskStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = request.user
    if not user.is_admin_role():
        owns = Task.objects.filter(
            id=task_id, restaurant_id=_restaurant_id(user), assigned_to=user
        ).exists()
        if not owns:
            return Response({'detail': 'Only the assignee or a manager can update this task.'},
                            status=status.HTTP_403_FORBIDDEN)

    task = _assignment_service(request).update_task_status(
        task_id, serializer.validated_data['status'], actor=user
    )
    return Response(TaskSerializer(task).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def schedule_task(request):
    result = _scheduling_service(request).schedule_task(request.data, actor=request.user)
    payload = _assign_payload(result)
    if result['auto_assign'] is not None:
        payload['outcome'] = result['auto_assign']['outcome']
        payload['ranked_candidates'] = result['auto_assign']['ranked_candidates']
    return Response(payload, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def bulk_schedule_tasks(request):
    """
    Bulk create tasks. Body: {"tasks": [...], "default_settings": {...}}.
    Returns 200 when at least one task was created, 400 when every item failed.
    """
    serializer = BulkScheduleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    results = _scheduling_service(request).bulk_schedule_tasks(
        data['tasks'], defaults=data.get('default_settings'), actor=request.user
    )
    code = status.HTTP_200_OK if results['success'] else status.HTTP_400_BAD_REQUEST
    return Response(results, status=code)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def recurrences(request):
    restaurant_id = _restaurant_id(request.user)
    if request.method == "GET":
        qs = TaskRecurrence.objects.filter(restaurant_id=restaurant_id).select_related('template')
        if request.query_params.get('active') in ('1', 'true', 'True'):
            qs = qs.filter(is_active=True)
        return Response(TaskRecurrenceSerializer(qs, many=True).data)

    serializer = RecurrenceCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    recurrence = RecurrenceService(restaurant_id=restaurant_id).create_recurrence(
        data['template_id'],
        data['recurrence_pattern'],
        timezone_name=data.get('timezone') or None,
        end_date=data.get('end_date'),
        max_runs=data.get('max_runs'),
        name=data.get('name') or None,
        actor=request.user,
    )
    return Response(TaskRecurrenceSerializer(recurrence).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def preview_recurrence(request):
    """Upcoming run instants for a pattern, without saving anything"""
    serializer = RecurrencePreviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    pattern = dict(data['recurrence_pattern'])
    if not pattern.get('timezone'):
        _restaurant_id(request.user)
        pattern['timezone'] = get_restaurant_timezone(request.user.restaurant)
    runs = upcoming_runs(pattern, data.get('reference') or timezone.now(), data['count'])
    return Response({'next_runs': [run.isoformat() for run in runs]})


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def deactivate_recurrence(request, recurrence_id):
    recurrence = RecurrenceService(restaurant_id=_restaurant_id(request.user)).deactivate_recurrence(recurrence_id)
    return Response(TaskRecurrenceSerializer(recurrence).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, IsManagerOrAdmin])
def run_recurrences(request):
    """Fire the restaurant's due schedules now instead of waiting for the beat sweep."""
    service = RecurrenceService(restaurant_id=_restaurant_id(request.user), dispatcher=NotificationDispatcher())
    return Response(service.fire_due_schedules())
