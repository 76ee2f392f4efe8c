# Generated manually for the task assignment and scheduling engine

import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models

PRIORITY_CHOICES = [('LOW', 'Low'), ('MEDIUM', 'Medium'), ('HIGH', 'High'), ('CRITICAL', 'Critical'), ('URGENT', 'Urgent')]
TASK_TYPE_CHOICES = [('SOP_EXECUTION', 'SOP Execution'), ('CLEANING', 'Cleaning'), ('MAINTENANCE', 'Maintenance'), ('TRAINING', 'Training'), ('AUDIT', 'Audit'), ('INVENTORY', 'Inventory'), ('CUSTOMER_SERVICE', 'Customer Service'), ('ADMIN', 'Admin'), ('CUSTOM', 'Custom')]
MINIMUM_ROLE_CHOICES = [('STAFF', 'Staff'), ('SUPERVISOR', 'Supervisor'), ('MANAGER', 'Manager'), ('ADMIN', 'Admin')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='TaskTemplate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('name_fr', models.CharField(blank=True, max_length=255, null=True)),
                ('description', models.TextField(blank=True, null=True)),
                ('task_type', models.CharField(choices=TASK_TYPE_CHOICES, default='CUSTOM', max_length=20)),
                ('priority', models.CharField(choices=PRIORITY_CHOICES, default='MEDIUM', max_length=20)),
                ('estimated_duration_minutes', models.IntegerField(blank=True, null=True)),
                ('required_skills', models.JSONField(blank=True, default=list, help_text='Skills required to complete tasks from this template')),
                ('location', models.CharField(blank=True, max_length=255, null=True)),
                ('minimum_role', models.CharField(choices=MINIMUM_ROLE_CHOICES, default='STAFF', max_length=20)),
                ('auto_assign', models.BooleanField(default=False, help_text='Automatically assign tasks generated from this template')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_templates', to=settings.AUTH_USER_MODEL)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_templates', to='accounts.restaurant')),
            ],
            options={
                'db_table': 'task_templates',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['restaurant', 'task_type'], name='task_tmpl_rest_type_idx')],
            },
        ),
        migrations.CreateModel(
            name='TaskRecurrence',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('recurrence_pattern', models.JSONField(default=dict)),
                ('timezone', models.CharField(default='Asia/Bangkok', max_length=50)),
                ('is_active', models.BooleanField(default=True)),
                ('next_run_at', models.DateTimeField(blank=True, null=True)),
                ('last_run_at', models.DateTimeField(blank=True, null=True)),
                ('total_runs', models.IntegerField(default=0)),
                ('failed_runs', models.IntegerField(default=0)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('max_runs', models.IntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_recurrences', to=settings.AUTH_USER_MODEL)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_recurrences', to='accounts.restaurant')),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recurrences', to='scheduling.tasktemplate')),
            ],
            options={
                'db_table': 'task_recurrence',
                'ordering': ['next_run_at'],
                'indexes': [models.Index(fields=['is_active', 'next_run_at'], name='task_recur_active_next_idx')],
            },
        ),
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=500)),
                ('title_fr', models.CharField(blank=True, max_length=500, null=True)),
                ('description', models.TextField(blank=True, null=True)),
                ('task_type', models.CharField(choices=TASK_TYPE_CHOICES, default='CUSTOM', max_length=20)),
                ('priority', models.CharField(choices=PRIORITY_CHOICES, default='MEDIUM', max_length=20)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('ASSIGNED', 'Assigned'), ('IN_PROGRESS', 'In Progress'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed')], default='PENDING', max_length=20)),
                ('required_skills', models.JSONField(blank=True, default=list)),
                ('location', models.CharField(blank=True, max_length=255, null=True)),
                ('minimum_role', models.CharField(choices=MINIMUM_ROLE_CHOICES, default='STAFF', max_length=20)),
                ('scheduled_for', models.DateTimeField(blank=True, null=True)),
                ('due_date', models.DateTimeField(blank=True, null=True)),
                ('estimated_duration_minutes', models.IntegerField(blank=True, null=True)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('is_recurring_instance', models.BooleanField(default=False)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tasks_assigned_by_me', to=settings.AUTH_USER_MODEL)),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_tasks', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_tasks', to=settings.AUTH_USER_MODEL)),
                ('recurrence', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generated_tasks', to='scheduling.taskrecurrence')),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tasks', to='accounts.restaurant')),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generated_tasks', to='scheduling.tasktemplate')),
            ],
            options={
                'db_table': 'tasks',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['restaurant', 'status'], name='tasks_rest_status_idx'),
                    models.Index(fields=['assigned_to', 'status'], name='tasks_assignee_status_idx'),
                    models.Index(fields=['scheduled_for'], name='tasks_scheduled_for_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TaskAssignment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('assigned_at', models.DateTimeField(auto_now_add=True)),
                ('method', models.CharField(choices=[('MANUAL', 'Manual'), ('AUTOMATIC', 'Automatic')], default='MANUAL', max_length=20)),
                ('assignment_score', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('is_current', models.BooleanField(default=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='task_assignments_made', to=settings.AUTH_USER_MODEL)),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='scheduling.task')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_assignments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'task_assignments',
                'ordering': ['-assigned_at'],
                'indexes': [models.Index(fields=['task', 'is_current'], name='task_assign_task_curr_idx')],
            },
        ),
    ]
