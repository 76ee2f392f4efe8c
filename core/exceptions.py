"""
Custom exceptions for the task assignment and scheduling engine
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class ResourceNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class TaskConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Task state conflict.'
    default_code = 'conflict'


class TaskAlreadyAssigned(TaskConflict):
    default_detail = 'Task is already assigned.'
    default_code = 'task_already_assigned'


class InvalidStatusTransition(TaskConflict):
    default_detail = 'Task status transition is not allowed.'
    default_code = 'invalid_status_transition'


class TaskValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request data.'
    default_code = 'validation_error'


class InvalidAssignment(TaskValidationError):
    default_detail = 'Invalid assignee.'
    default_code = 'invalid_assignment'


class InvalidRecurrencePattern(TaskValidationError):
    default_detail = 'Invalid recurrence pattern.'
    default_code = 'invalid_recurrence_pattern'


class BulkLimitExceeded(TaskValidationError):
    default_detail = 'Too many tasks for bulk operation.'
    default_code = 'bulk_limit_exceeded'


class RecurrenceExhausted(Exception):
    """Raised inside the sweep when a schedule is past its end date or max runs."""


def error_message(exc):
    """Flatten an APIException detail (dict, list or string) into one readable line."""
    detail = getattr(exc, 'detail', None)
    if isinstance(detail, dict):
        parts = []
        for field, errors in detail.items():
            messages = errors if isinstance(errors, list) else [errors]
            parts.append(f"{field}: {' '.join(str(m) for m in messages)}")
        return '; '.join(parts)
    if isinstance(detail, list):
        return ' '.join(str(d) for d in detail)
    if detail is not None:
        return str(detail)
    return str(exc)
