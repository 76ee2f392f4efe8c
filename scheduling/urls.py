from django.urls import path

from . import task_views

urlpatterns = [
    path('', task_views.task_list, name='task-list'),
    path('assign/', task_views.assign_task, name='task-assign'),
    path('assign/auto/', task_views.auto_assign_task, name='task-auto-assign'),
    path('schedule/', task_views.schedule_task, name='task-schedule'),
    path('schedule/bulk/', task_views.bulk_schedule_tasks, name='task-bulk-schedule'),
    path('recurrences/', task_views.recurrences, name='recurrence-list'),
    path('recurrences/preview/', task_views.preview_recurrence, name='recurrence-preview'),
    path('recurrences/run/', task_views.run_recurrences, name='recurrence-run'),
    path('recurrences/<uuid:recurrence_id>/deactivate/', task_views.deactivate_recurrence, name='recurrence-deactivate'),
    path('<uuid:task_id>/', task_views.task_detail, name='task-detail'),
    path('<uuid:task_id>/candidates/', task_views.task_candidates, name='task-candidates'),
    path('<uuid:task_id>/status/', task_views.update_task_status, name='task-status'),
]
