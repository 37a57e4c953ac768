'''
Name: apps/scheduler/utils/constants.py
Description: Constants used in the scheduler app.
                Work item kinds and states
                Work window and durations
                Meeting catalog and self-created event patterns
                Debug logger
'''

import re

from django.db import models


class WorkItemKind(models.TextChoices):
    TICKET = "ticket", "Ticket"
    MEETING = "meeting", "Meeting"


class WorkItemState(models.TextChoices):
    PENDING = "pending", "Pending"
    SCHEDULED = "scheduled", "Scheduled"
    FAILED = "failed", "Failed"


class FailureReason(models.TextChoices):
    NO_SLOT = "no_slot", "No free slot"
    CALENDAR_ERROR = "calendar_error", "Calendar event creation failed"


# Lower tier is placed first
PRIORITY_ORDER = {
    WorkItemKind.MEETING: 0,
    WorkItemKind.TICKET: 1,
}

# Work window, civil time in settings.SCHEDULER_TIME_ZONE
WORKDAY_START = (9, 0)
WORKDAY_END = (18, 0)

TICKET_DURATIONS = (60, 120)
MEETING_DURATION = 30

MEETING_TYPES = (
    "Daily Standup",
    "Sprint Planning",
    "Sprint Retrospective",
    "UI Review",
    "Code Review",
    "Team Sync",
)

MAX_MEETINGS_PER_BATCH = 10
DEFAULT_MEETINGS_PER_BATCH = 2

# "TMI-1234" at the start of an event summary marks an event this app created
SELF_EVENT_TICKET_PATTERN = re.compile(r"^[A-Z]+-\d+")

# Loose label scan used when the extraction model returns unparseable output
TICKET_LABEL_PATTERN = re.compile(r"\b[A-Z]{2,}-\d+\b")

CALENDAR_ID = "primary"
CALENDAR_EVENT_COLOR = "9"
GOOGLE_PROVIDER = "google"
GOOGLE_CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]

RUN_LOCK_KEY = "scheduler:run-lock:{user_id}"

LOGGER_NAME = "apps.scheduler"
