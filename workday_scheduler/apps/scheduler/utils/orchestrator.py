'''
Name: apps/scheduler/utils/orchestrator.py
Description: Places a user's pending work items on their calendar for one day.
                Meetings go first, then tickets, each into the earliest free gap
                of the 09:00-18:00 window. Free gaps are recomputed after every
                placement. Items that cannot be placed are discarded and counted.
'''

import logging
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional

from django.conf import settings
from django.core.cache import cache

from ..exceptions import CalendarError, ScheduleInProgress
from ..models import WorkItem
from .constants import LOGGER_NAME, RUN_LOCK_KEY, FailureReason, WorkItemState
from .google_calendar import GoogleCalendarStore
from .policy import in_priority_order
from .scheduler import busy_from_events, first_fit, free_slots, with_block
from .timewindow import day_window

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class ScheduleResult:
    scheduled: int = 0
    failed: int = 0
    # "<item id>: <message>" for every calendar write that failed
    errors: List[str] = field(default_factory=list)

    def as_dict(self):
        return asdict(self)


@contextmanager
def user_schedule_lock(user_id, timeout: Optional[int] = None):
    """
    Hold the per-user scheduling lock for the duration of the block.
    Two runs for the same user would otherwise both see the same free gaps.
    The key stores a token unique to this holder; a holder whose key already
    expired and was taken by a later run leaves that run's key alone.
    """
    key = RUN_LOCK_KEY.format(user_id=user_id)
    timeout = timeout or settings.SCHEDULER_LOCK_TIMEOUT
    token = uuid.uuid4().hex
    if not cache.add(key, token, timeout):
        logger.warning("user_schedule_lock: run already in progress for user=%s", user_id)
        raise ScheduleInProgress("A scheduling run is already in progress for this user")
    try:
        yield token
    finally:
        if cache.get(key) == token:
            cache.delete(key)
        else:
            logger.warning("user_schedule_lock: lock for user=%s expired before the run finished", user_id)


def discard_item(item: WorkItem, reason: str) -> None:
    '''
    Take an unplaceable item out of the pending queue.
    Deleted by default; kept as "failed" with a reason when
    SCHEDULER_RETAIN_FAILED_ITEMS is on.
    '''
    if settings.SCHEDULER_RETAIN_FAILED_ITEMS:
        item.mark_failed(reason)
    else:
        WorkItem.objects.filter(pk=item.pk, state=WorkItemState.PENDING).delete()
    logger.warning("discard_item: id=%s title=%r reason=%s", item.pk, item.display_title, reason)


def schedule_pending(user, date_str, store_factory: Optional[Callable] = None, zone=None) -> ScheduleResult:
    """
    Schedule every pending item of `user` on `date_str` ("YYYY-MM-DD" in the scheduling zone).

    Raises:
        ValidationError: bad date string
        ScheduleInProgress: another run for this user holds the lock
        CalendarAuthError / CalendarReadError: nothing has been touched
    """
    window = day_window(date_str, zone)
    if store_factory is None:
        def store_factory(u):
            return GoogleCalendarStore.for_user(u, zone=zone)

    with user_schedule_lock(user.pk):
        items = WorkItem.objects.for_user(user)
        pending = list(items.pending().in_creation_order())
        if not pending:
            logger.info("schedule_pending: user=%s nothing pending", user.pk)
            return ScheduleResult()

        queue = in_priority_order(pending)
        logger.info("schedule_pending: user=%s date=%s window=[%s, %s) pending=%d",
                    user.pk, date_str, window.start, window.end, len(queue))

        store = store_factory(user)
        own_event_ids = items.calendar_event_ids()
        events = store.list_events(window)
        occupied = busy_from_events(events, window, exclude_ids=own_event_ids)

        result = ScheduleResult()
        for item in queue:
            slot = first_fit(free_slots(occupied, window), item.duration_minutes)
            if slot is None:
                discard_item(item, FailureReason.NO_SLOT)
                result.failed += 1
                continue

            try:
                event_id = store.create_event(item.display_title, slot.start, slot.end)
            except CalendarError as e:
                logger.exception("schedule_pending: failed to schedule task %s", item.pk)
                discard_item(item, FailureReason.CALENDAR_ERROR)
                result.failed += 1
                result.errors.append(f"{item.pk}: {e}")
                continue

            if not item.mark_scheduled(slot, event_id):
                # deleted by its owner mid-run; take the event back off the calendar
                logger.warning("schedule_pending: item %s left the pending queue mid-run; removing event %r", item.pk, event_id)
                try:
                    store.delete_event(event_id)
                except CalendarError as e:
                    logger.exception("schedule_pending: could not remove event %r", event_id)
                    result.errors.append(f"{item.pk}: {e}")
                    # still on the calendar, so later items must avoid it
                    occupied = with_block(occupied, slot)
                continue
            occupied = with_block(occupied, slot)
            result.scheduled += 1
            logger.info("schedule_pending: scheduled id=%s title=%r start=%s end=%s",
                        item.pk, item.display_title, slot.start, slot.end)

    logger.info("schedule_pending: done user=%s scheduled=%d failed=%d", user.pk, result.scheduled, result.failed)
    return result
