'''
Name: apps/scheduler/urls.py
Description: URL configurations for the task API (mounted at /api/tasks/).
'''

from django.urls import path
from .views import tasks, add_meetings, update_title, delete_task, extract_tasks, schedule

app_name = "scheduler"

urlpatterns = [
    path('', tasks, name='tasks'),
    path('meetings/', add_meetings, name='add_meetings'),
    path('extract/', extract_tasks, name='extract_tasks'),
    path('schedule/', schedule, name='schedule'),
    path('<int:task_id>/title/', update_title, name='update_title'),
    path('<int:task_id>/', delete_task, name='delete_task'),
]
