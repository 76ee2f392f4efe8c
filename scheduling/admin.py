from django.contrib import admin
from .models import TaskTemplate, Task, TaskAssignment, TaskRecurrence


@admin.register(TaskTemplate)
class TaskTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'restaurant', 'task_type', 'priority', 'minimum_role', 'auto_assign', 'is_active']
    list_filter = ['task_type', 'priority', 'auto_assign', 'is_active', 'restaurant']
    search_fields = ['name', 'name_fr', 'description']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'restaurant', 'priority', 'status', 'assigned_to', 'scheduled_for', 'created_at']
    list_filter = ['status', 'priority', 'task_type', 'is_recurring_instance', 'restaurant']
    search_fields = ['title', 'title_fr', 'assigned_to__email']
    readonly_fields = ['id', 'assigned_at', 'started_at', 'completed_at', 'created_at', 'updated_at']


@admin.register(TaskAssignment)
class TaskAssignmentAdmin(admin.ModelAdmin):
    list_display = ['task', 'user', 'method', 'assignment_score', 'is_current', 'assigned_at']
    list_filter = ['method', 'is_current']
    search_fields = ['task__title', 'user__email']

    def has_change_permission(self, request, obj=None):
        return False  # History rows are append-only


@admin.register(TaskRecurrence)
class TaskRecurrenceAdmin(admin.ModelAdmin):
    list_display = ['name', 'restaurant', 'is_active', 'next_run_at', 'total_runs', 'failed_runs', 'max_runs', 'end_date']
    list_filter = ['is_active', 'restaurant']
    search_fields = ['name', 'template__name']
    readonly_fields = ['id', 'last_run_at', 'total_runs', 'failed_runs', 'created_at', 'updated_at']
