'''
Name: workday_scheduler/wsgi.py
Description: WSGI entry point for the workday scheduler project.
'''
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "workday_scheduler.settings")

application = get_wsgi_application()
