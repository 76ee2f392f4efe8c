"""
Task, assignment history and recurrence models for restaurant operations
"""
from django.db import models
import uuid
from django.conf import settings

from accounts.models import MINIMUM_ROLE_CHOICES


PRIORITY_CHOICES = (
    ('LOW', 'Low'),
    ('MEDIUM', 'Medium'),
    ('HIGH', 'High'),
    ('CRITICAL', 'Critical'),
    ('URGENT', 'Urgent'),
)

TASK_TYPE_CHOICES = (
    ('SOP_EXECUTION', 'SOP Execution'),
    ('CLEANING', 'Cleaning'),
    ('MAINTENANCE', 'Maintenance'),
    ('TRAINING', 'Training'),
    ('AUDIT', 'Audit'),
    ('INVENTORY', 'Inventory'),
    ('CUSTOMER_SERVICE', 'Customer Service'),
    ('ADMIN', 'Admin'),
    ('CUSTOM', 'Custom'),
)


class TaskTemplate(models.Model):
    """Reusable definition that recurring schedules materialize tasks from"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey('accounts.Restaurant', on_delete=models.CASCADE, related_name='task_templates')
    name = models.CharField(max_length=255)
    name_fr = models.CharField(max_length=255, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    task_type = models.CharField(max_length=20, choices=TASK_TYPE_CHOICES, default='CUSTOM')
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='MEDIUM')
    estimated_duration_minutes = models.IntegerField(null=True, blank=True)
    required_skills = models.JSONField(default=list, blank=True, help_text="Skills required to complete tasks from this template")
    location = models.CharField(max_length=255, blank=True, null=True)
    minimum_role = models.CharField(max_length=20, choices=MINIMUM_ROLE_CHOICES, default='STAFF')
    auto_assign = models.BooleanField(default=False, help_text="Automatically assign tasks generated from this template")
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_templates')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'task_templates'
        ordering = ['name']
        indexes = [
            models.Index(fields=['restaurant', 'task_type'], name='task_tmpl_rest_type_idx'),
        ]

    def __str__(self):
        return f"{self.name} - {self.restaurant.name}"


class Task(models.Model):
    """A single operational task with at most one active assignee"""
    STATUS_PENDING = 'PENDING'
    STATUS_ASSIGNED = 'ASSIGNED'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_FAILED = 'FAILED'

    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    )

    ACTIVE_STATUSES = (STATUS_ASSIGNED, STATUS_IN_PROGRESS)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)

    # Unassignment (ASSIGNED -> PENDING) happens outside the engine
    ALLOWED_TRANSITIONS = {
        STATUS_PENDING: (STATUS_ASSIGNED,),
        STATUS_ASSIGNED: (STATUS_IN_PROGRESS,),
        STATUS_IN_PROGRESS: (STATUS_COMPLETED, STATUS_FAILED),
        STATUS_COMPLETED: (),
        STATUS_FAILED: (),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey('accounts.Restaurant', on_delete=models.CASCADE, related_name='tasks')
    template = models.ForeignKey(TaskTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name='generated_tasks')
    recurrence = models.ForeignKey('scheduling.TaskRecurrence', on_delete=models.SET_NULL, null=True, blank=True, related_name='generated_tasks')
    title = models.CharField(max_length=500)
    title_fr = models.CharField(max_length=500, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    task_type = models.CharField(max_length=20, choices=TASK_TYPE_CHOICES, default='CUSTOM')
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='MEDIUM')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Requirements
    required_skills = models.JSONField(default=list, blank=True)
    location = models.CharField(max_length=255, blank=True, null=True)
    minimum_role = models.CharField(max_length=20, choices=MINIMUM_ROLE_CHOICES, default='STAFF')

    # Timing
    scheduled_for = models.DateTimeField(null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    estimated_duration_minutes = models.IntegerField(null=True, blank=True)

    # Assignment
    assigned_to = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_tasks')
    assigned_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='tasks_assigned_by_me')
    assigned_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    is_recurring_instance = models.BooleanField(default=False)
    metadata = models.JSONField(default=dict, blank=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_tasks')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tasks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['restaurant', 'status'], name='tasks_rest_status_idx'),
            models.Index(fields=['assigned_to', 'status'], name='tasks_assignee_status_idx'),
            models.Index(fields=['scheduled_for'], name='tasks_scheduled_for_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def can_transition_to(self, new_status):
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, ())


class TaskAssignment(models.Model):
    """Append-only assignment history; the binding record has is_current=True"""
    METHOD_MANUAL = 'MANUAL'
    METHOD_AUTOMATIC = 'AUTOMATIC'
    METHOD_CHOICES = (
        (METHOD_MANUAL, 'Manual'),
        (METHOD_AUTOMATIC, 'Automatic'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='task_assignments')
    assigned_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='task_assignments_made')
    assigned_at = models.DateTimeField(auto_now_add=True)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=METHOD_MANUAL)
    assignment_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    is_current = models.BooleanField(default=True)
    notes = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'task_assignments'
        ordering = ['-assigned_at']
        indexes = [
            models.Index(fields=['task', 'is_current'], name='task_assign_task_curr_idx'),
        ]

    def __str__(self):
        return f"{self.task_id} -> {self.user_id} ({self.method})"


class TaskRecurrence(models.Model):
    """Recurring schedule that materializes tasks from a template"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    template = models.ForeignKey(TaskTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name='recurrences')
    restaurant = models.ForeignKey('accounts.Restaurant', on_delete=models.CASCADE, related_name='task_recurrences')
    name = models.CharField(max_length=255)
    recurrence_pattern = models.JSONField(default=dict)
    timezone = models.CharField(max_length=50, default='Asia/Bangkok')
    is_active = models.BooleanField(default=True)
    next_run_at = models.DateTimeField(null=True, blank=True)
    last_run_at = models.DateTimeField(null=True, blank=True)
    total_runs = models.IntegerField(default=0)
    failed_runs = models.IntegerField(default=0)
    end_date = models.DateField(null=True, blank=True)
    max_runs = models.IntegerField(null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_recurrences')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'task_recurrence'
        ordering = ['next_run_at']
        indexes = [
            models.Index(fields=['is_active', 'next_run_at'], name='task_recur_active_next_idx'),
        ]

    def __str__(self):
        return f"{self.name} (next: {self.next_run_at})"
