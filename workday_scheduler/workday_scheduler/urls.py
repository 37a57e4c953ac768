'''
Name: workday_scheduler/urls.py
Description: Root URL configuration. Mounts the task API and Django auth views.
'''

from django.urls import path, include

urlpatterns = [
    path("accounts/", include("django.contrib.auth.urls")),
    path("api/tasks/", include("apps.scheduler.urls")),
]
