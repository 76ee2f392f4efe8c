from rest_framework import serializers

from accounts.models import MINIMUM_ROLE_CHOICES
from .models import PRIORITY_CHOICES, TASK_TYPE_CHOICES, Task, TaskAssignment, TaskRecurrence


class TaskAssignmentSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.get_full_name', read_only=True)
    assigned_by_name = serializers.CharField(source='assigned_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = TaskAssignment
        fields = [
            'id', 'task', 'user', 'user_name', 'assigned_by', 'assigned_by_name',
            'assigned_at', 'method', 'assignment_score', 'is_current', 'notes'
        ]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    assigned_to_name = serializers.CharField(source='assigned_to.get_full_name', read_only=True, default=None)
    current_assignment = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id', 'restaurant', 'template', 'recurrence', 'title', 'title_fr', 'description',
            'task_type', 'priority', 'status', 'required_skills', 'location', 'minimum_role',
            'scheduled_for', 'due_date', 'estimated_duration_minutes',
            'assigned_to', 'assigned_to_name', 'assigned_by', 'assigned_at',
            'started_at', 'completed_at', 'is_recurring_instance', 'metadata',
            'current_assignment', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_current_assignment(self, obj):
        assignment = obj.assignments.filter(is_current=True).first()
        return TaskAssignmentSerializer(assignment).data if assignment else None


class TaskRecurrenceSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source='template.name', read_only=True, default=None)

    class Meta:
        model = TaskRecurrence
        fields = [
            'id', 'template', 'template_name', 'restaurant', 'name', 'recurrence_pattern',
            'timezone', 'is_active', 'next_run_at', 'last_run_at', 'total_runs', 'failed_runs',
            'end_date', 'max_runs', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------

class ScheduleTaskSerializer(serializers.Serializer):
    """One task-creation item, used by single and bulk scheduling."""
    title = serializers.CharField(max_length=500, required=False, allow_blank=True)
    title_fr = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    template_id = serializers.UUIDField(required=False, allow_null=True)
    task_type = serializers.ChoiceField(choices=TASK_TYPE_CHOICES, required=False)
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, required=False)
    required_skills = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    minimum_role = serializers.ChoiceField(choices=MINIMUM_ROLE_CHOICES, required=False)
    scheduled_for = serializers.DateTimeField(required=False, allow_null=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    estimated_duration_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    metadata = serializers.DictField(required=False)
    assign_to = serializers.UUIDField(required=False, allow_null=True)
    auto_assign = serializers.BooleanField(required=False, default=False)
    max_candidates = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def to_internal_value(self, data):
        # Priority/type/role arrive in any case from dashboards and imports
        if isinstance(data, dict):
            data = data.copy()
            for key in ('priority', 'task_type', 'minimum_role'):
                if isinstance(data.get(key), str):
                    data[key] = data[key].upper()
        return super().to_internal_value(data)

    def validate(self, attrs):
        if not (attrs.get('title') or '').strip() and not attrs.get('template_id'):
            raise serializers.ValidationError({'title': 'This field is required.'})
        if attrs.get('assign_to') and attrs.get('auto_assign'):
            raise serializers.ValidationError('Use either assign_to or auto_assign, not both.')
        scheduled_for = attrs.get('scheduled_for')
        due_date = attrs.get('due_date')
        if scheduled_for and due_date and due_date < scheduled_for:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before scheduled_for.'})
        return attrs


class AssignTaskSerializer(serializers.Serializer):
    task_id = serializers.UUIDField()
    staff_id = serializers.UUIDField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AutoAssignTaskSerializer(serializers.Serializer):
    task_id = serializers.UUIDField()
    max_candidates = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES)

    def to_internal_value(self, data):
        if isinstance(data, dict) and isinstance(data.get('status'), str):
            data = data.copy()
            data['status'] = data['status'].strip().upper()
        return super().to_internal_value(data)


class BulkScheduleSerializer(serializers.Serializer):
    # Items are validated one by one by the scheduling service
    tasks = serializers.ListField(child=serializers.JSONField(), allow_empty=False)
    default_settings = serializers.DictField(required=False)


class RecurrenceCreateSerializer(serializers.Serializer):
    template_id = serializers.UUIDField()
    recurrence_pattern = serializers.DictField()
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    timezone = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    max_runs = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class RecurrencePreviewSerializer(serializers.Serializer):
    recurrence_pattern = serializers.DictField()
    reference = serializers.DateTimeField(required=False, allow_null=True)
    count = serializers.IntegerField(required=False, default=5, min_value=1, max_value=20)
