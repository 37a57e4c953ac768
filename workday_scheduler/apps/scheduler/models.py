"""
Models for work items and linked calendar accounts
Along with instance methods
"""
import logging
import random
from typing import Iterable, Mapping, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .utils.constants import (
    LOGGER_NAME,
    FailureReason,
    WorkItemKind,
    WorkItemState,
)
from .utils.policy import meeting_details, ticket_duration
from .utils.scheduler import TimeInterval

logger = logging.getLogger(LOGGER_NAME)


# -----------------------------------
# QuerySets & Managers
# -----------------------------------
class WorkItemQuerySet(models.QuerySet):
    def for_user(self, user):
        """All work items owned by this user."""
        return self.filter(owner=user)

    def with_state(self, state):
        return self.filter(state=state)

    def pending(self):
        return self.with_state(WorkItemState.PENDING)

    def scheduled(self):
        return self.with_state(WorkItemState.SCHEDULED)

    def in_creation_order(self):
        return self.order_by("created_at", "id")

    def newest_first(self):
        return self.order_by("-created_at", "-id")

    def calendar_event_ids(self):
        """Event ids of items this app already placed on the calendar."""
        return list(
            self.scheduled()
            .exclude(calendar_event_id__isnull=True)
            .exclude(calendar_event_id="")
            .values_list("calendar_event_id", flat=True)
        )


class WorkItemManager(models.Manager):
    def get_queryset(self):
        return WorkItemQuerySet(self.model, using=self._db)

    def for_user(self, user):
        return self.get_queryset().for_user(user)

    def pending(self):
        return self.get_queryset().pending()

    def scheduled(self):
        return self.get_queryset().scheduled()

    def in_creation_order(self):
        return self.get_queryset().in_creation_order()

    def add_tickets(self, owner, tickets: Iterable[Mapping], rng: Optional[random.Random] = None):
        '''
        Create pending tickets from {"label", "title"?} entries.
        Title falls back to the label.
        '''
        items = []
        for entry in tickets:
            label = (entry.get("label") or "").strip()
            if not label:
                raise ValidationError("Ticket number cannot be empty", code="blank_label")
            title = (entry.get("title") or "").strip() or label
            items.append(self.model(
                owner=owner,
                kind=WorkItemKind.TICKET,
                label=label,
                title=title,
                duration_minutes=ticket_duration(rng),
            ))
        if not items:
            raise ValidationError("At least one ticket is required", code="empty")
        created = self.bulk_create(items)
        logger.info("add_tickets: owner=%s created=%d", owner.pk, len(created))
        return created

    def add_meetings(self, owner, count: int = 2, rng: Optional[random.Random] = None):
        '''
        Create `count` pending meetings with titles drawn from the catalog
        '''
        if count < 1:
            raise ValidationError("At least one meeting is required", code="empty")
        items = []
        for _ in range(count):
            title, duration = meeting_details(rng)
            items.append(self.model(
                owner=owner,
                kind=WorkItemKind.MEETING,
                label=None,
                title=title,
                duration_minutes=duration,
            ))
        created = self.bulk_create(items)
        logger.info("add_meetings: owner=%s created=%d", owner.pk, len(created))
        return created


# -----------------------------------
# Models
# -----------------------------------
class CalendarAccount(models.Model):
    '''
    OAuth credential of the calendar linked to a user.
    One per user, written by the sign-in flow.
    '''
    owner = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='calendar_account')
    provider = models.CharField(max_length=50)
    access_token = models.TextField(blank=True, default="")
    refresh_token = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "calendar_account"

    def __str__(self):
        owner_name = getattr(self.owner, 'username', str(self.owner_id))
        return f"{self.provider} (Owner: {owner_name})"


class WorkItem(models.Model):
    '''
    A ticket or meeting waiting to be placed on the owner's calendar.
    Only pending items can be renamed or deleted; scheduled ones are history.
    '''
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='work_items')
    kind = models.CharField(max_length=20, choices=WorkItemKind.choices, default=WorkItemKind.TICKET)
    label = models.CharField(max_length=100, blank=True, null=True)
    title = models.CharField(max_length=500)
    state = models.CharField(max_length=20, choices=WorkItemState.choices, default=WorkItemState.PENDING)
    duration_minutes = models.PositiveIntegerField()
    scheduled_start = models.DateTimeField(blank=True, null=True)
    scheduled_end = models.DateTimeField(blank=True, null=True)
    calendar_event_id = models.CharField(max_length=255, blank=True, null=True)
    failure_reason = models.CharField(max_length=30, choices=FailureReason.choices, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WorkItemManager()

    class Meta:
        db_table = "work_item"
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=["owner", "state"], name="work_item_owner_state_idx"),
            models.Index(fields=["state"], name="work_item_state_idx"),
            models.Index(fields=["kind"], name="work_item_kind_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(duration_minutes__gt=0),
                name="work_item_positive_duration",
            ),
        ]

    def __str__(self):
        return self.display_title

    # -----------------------------------
    # Helper methods
    # -----------------------------------
    @property
    def label_or_none(self) -> Optional[str]:
        '''
        Ticket code for tickets, None for meetings
        '''
        if self.kind == WorkItemKind.TICKET:
            return self.label or None
        if self.kind == WorkItemKind.MEETING:
            return None
        raise ValueError(f"unknown work item kind: {self.kind!r}")

    @property
    def display_title(self) -> str:
        '''
        Calendar event summary: "<label>: <title>" when there is a label
        '''
        label = self.label_or_none
        return f"{label}: {self.title}" if label else self.title

    @property
    def is_pending(self) -> bool:
        return self.state == WorkItemState.PENDING

    @property
    def placement(self) -> Optional[TimeInterval]:
        if self.scheduled_start and self.scheduled_end:
            return TimeInterval(self.scheduled_start, self.scheduled_end)
        return None

    def _require_pending(self, action):
        if not self.is_pending:
            raise ValidationError(f"Can only {action} pending tasks", code="not_pending")

    def rename(self, new_title: str):
        '''
        Change the title of a pending item
        '''
        new_title = (new_title or "").strip()
        if not new_title:
            raise ValidationError("Title cannot be empty", code="blank_title")
        self._require_pending("edit")
        updated = WorkItem.objects.filter(pk=self.pk, state=WorkItemState.PENDING).update(
            title=new_title, updated_at=timezone.now()
        )
        if not updated:
            raise ValidationError("Can only edit pending tasks", code="not_pending")
        self.refresh_from_db()
        return self

    def delete_pending(self):
        '''
        Delete the item if it is still pending
        '''
        self._require_pending("delete")
        deleted, _ = WorkItem.objects.filter(pk=self.pk, state=WorkItemState.PENDING).delete()
        if not deleted:
            raise ValidationError("Can only delete pending tasks", code="not_pending")
        return None

    def mark_scheduled(self, placement: TimeInterval, calendar_event_id: str) -> bool:
        '''
        Pending -> scheduled, as a single conditional update.
        Returns False if the item was no longer pending (e.g. deleted meanwhile).
        '''
        now = timezone.now()
        updated = WorkItem.objects.filter(pk=self.pk, state=WorkItemState.PENDING).update(
            state=WorkItemState.SCHEDULED,
            scheduled_start=placement.start,
            scheduled_end=placement.end,
            calendar_event_id=calendar_event_id,
            updated_at=now,
        )
        if updated:
            self.state = WorkItemState.SCHEDULED
            self.scheduled_start, self.scheduled_end = placement.start, placement.end
            self.calendar_event_id = calendar_event_id
            self.updated_at = now
        return bool(updated)

    def mark_failed(self, reason: str) -> bool:
        '''
        Pending -> failed with a reason. Used when failed items are retained.
        '''
        now = timezone.now()
        updated = WorkItem.objects.filter(pk=self.pk, state=WorkItemState.PENDING).update(
            state=WorkItemState.FAILED, failure_reason=reason, updated_at=now,
        )
        if updated:
            self.state = WorkItemState.FAILED
            self.failure_reason = reason
            self.updated_at = now
        return bool(updated)

    def to_dict(self):
        return {
            "id": self.pk,
            "kind": self.kind,
            "label": self.label_or_none,
            "title": self.title,
            "state": self.state,
            "duration_minutes": self.duration_minutes,
            "scheduled_start": self.scheduled_start.isoformat() if self.scheduled_start else None,
            "scheduled_end": self.scheduled_end.isoformat() if self.scheduled_end else None,
            "calendar_event_id": self.calendar_event_id,
            "failure_reason": self.failure_reason or None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
