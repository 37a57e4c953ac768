'''
Name: apps/scheduler/views.py
Description: JSON endpoints for the work item queue and scheduling runs.
                Every endpoint is scoped to the logged-in user.
'''
import json
import logging

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .exceptions import (
    CalendarAuthError,
    CalendarReadError,
    ExtractionError,
    ScheduleInProgress,
)
from .forms import (
    AddMeetingsForm,
    AddTicketsForm,
    ScheduleForm,
    ScreenshotUploadForm,
    TaskFilterForm,
    UpdateTitleForm,
)
from .models import WorkItem
from .utils.constants import LOGGER_NAME
from .utils.orchestrator import schedule_pending
from .utils.screenshot import extract_tickets

logger = logging.getLogger(LOGGER_NAME)

# ============================================================
#  VIEWS
# ============================================================

@login_required
@require_http_methods(["GET", "POST"])
def tasks(request):
    '''
    GET: list the user's tasks, newest first, optionally filtered by ?status=
    POST: add tickets typed in manually
    '''
    if request.method == "GET":
        form = TaskFilterForm(request.GET)
        if not form.is_valid():
            return _form_error(form)
        qs = WorkItem.objects.for_user(request.user).newest_first()
        status = form.cleaned_data.get("status")
        if status:
            qs = qs.with_state(status)
        return JsonResponse({"tasks": [item.to_dict() for item in qs]})

    form = AddTicketsForm(_json_body(request))
    if not form.is_valid():
        logger.warning("tasks: add form invalid: %s", form.errors)
        return _form_error(form)
    entries = [{"label": ticket} for ticket in form.cleaned_data["tickets"]]
    try:
        created = WorkItem.objects.add_tickets(request.user, entries)
    except ValidationError as e:
        return _validation_error(e)
    return JsonResponse({
        "tasks": [item.to_dict() for item in created],
        "message": f"{len(created)} task(s) added successfully",
    })

@login_required
@require_http_methods(["POST"])
def add_meetings(request):
    '''
    Generate generic meetings from the meeting catalog
    '''
    form = AddMeetingsForm(_json_body(request))
    if not form.is_valid():
        return _form_error(form)
    created = WorkItem.objects.add_meetings(request.user, form.cleaned_data["count"])
    return JsonResponse({
        "meetings": [item.to_dict() for item in created],
        "message": f"{len(created)} meeting(s) added successfully",
    })

@login_required
@require_http_methods(["PATCH"])
def update_title(request, task_id):
    form = UpdateTitleForm(_json_body(request))
    if not form.is_valid():
        return _form_error(form)
    item = _get_item(request, task_id)
    if item is None:
        return _error("Task not found", status=404)
    try:
        item.rename(form.cleaned_data["title"])
    except ValidationError as e:
        return _validation_error(e)
    return JsonResponse({"task": item.to_dict(), "message": "Task title updated successfully"})

@login_required
@require_http_methods(["DELETE"])
def delete_task(request, task_id):
    item = _get_item(request, task_id)
    if item is None:
        return _error("Task not found", status=404)
    try:
        item.delete_pending()
    except ValidationError as e:
        return _validation_error(e)
    return JsonResponse({"message": "Task deleted successfully"})

@login_required
@require_http_methods(["POST"])
def extract_tasks(request):
    '''
    Upload a board screenshot, extract ticket numbers/titles with the
    vision model and queue them as pending tickets.
    '''
    form = ScreenshotUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        return _form_error(form)
    image = form.cleaned_data["screenshot"].read()
    try:
        result = extract_tickets(image)
    except ExtractionError as e:
        return _error(f"Failed to process screenshot: {e}", status=502)

    if not result.tickets:
        return JsonResponse({"tasks": [], "tickets": [], "message": "No tasks found in the screenshot"})

    created = WorkItem.objects.add_tickets(request.user, [t.as_entry() for t in result.tickets])
    logger.info("extract_tasks: user=%s extracted=%d partial=%s", request.user.pk, len(created), result.partial)
    return JsonResponse({
        "tasks": [item.to_dict() for item in created],
        "tickets": [t.label for t in result.tickets],
        "partial": result.partial,
        "message": f"{len(created)} ticket(s) extracted and added successfully",
    })

@login_required
@require_http_methods(["POST"])
def schedule(request):
    '''
    Place all pending tasks on the user's calendar for the given date (9AM-6PM)
    '''
    form = ScheduleForm(_json_body(request))
    if not form.is_valid():
        return _form_error(form)
    day = form.cleaned_data["date"]
    try:
        result = schedule_pending(request.user, day.isoformat())
    except ValidationError as e:
        return _validation_error(e)
    except CalendarAuthError as e:
        return _error(str(e), status=401)
    except ScheduleInProgress as e:
        return _error(str(e), status=409)
    except CalendarReadError as e:
        return _error(str(e), status=502)

    return JsonResponse({
        "scheduled": result.scheduled,
        "failed": result.failed,
        "message": f"Scheduled {result.scheduled} task(s), {result.failed} failed",
    })

# ============================================================
#  HELPERS
# ============================================================

def _json_body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}

def _get_item(request, task_id):
    try:
        return WorkItem.objects.for_user(request.user).get(pk=task_id)
    except WorkItem.DoesNotExist:
        return None

def _error(message, status=400):
    return JsonResponse({"error": message}, status=status)

def _form_error(form):
    errors = {name: [str(m) for m in messages] for name, messages in form.errors.items()}
    first = next(iter(errors.values()), ["Invalid request"])[0]
    return JsonResponse({"error": first, "errors": errors}, status=400)

def _validation_error(exc):
    return _error(" ".join(exc.messages), status=400)
