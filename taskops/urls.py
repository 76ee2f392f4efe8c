"""
URL configuration for taskops project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/tasks/', include('scheduling.urls')),  # Assignment, scheduling and recurrence
]
