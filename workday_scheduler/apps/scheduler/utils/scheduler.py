'''
Name: apps/scheduler/utils/scheduler.py
Description: Interval math for placing work items into a day.
                free_slots: occupied blocks -> free gaps inside the work window
                first_fit:  earliest free gap long enough for a duration
                with_block: occupied set extended with a new placement
                busy_from_events: calendar events -> occupied blocks
'''

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .constants import LOGGER_NAME, MEETING_TYPES, SELF_EVENT_TICKET_PATTERN

logger = logging.getLogger(LOGGER_NAME)


class TimeInterval(NamedTuple):
    """Half-open [start, end) between two timezone-aware instants."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def minutes(self) -> float:
        return self.duration.total_seconds() / 60.0

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def clip(self, window: "TimeInterval") -> "TimeInterval":
        """Clamp to window. Blocks fully outside come back empty."""
        start = min(max(self.start, window.start), window.end)
        end = max(min(self.end, window.end), start)
        return TimeInterval(start, end)


def sort_blocks(blocks: Iterable[Tuple[datetime, datetime]]) -> Tuple[TimeInterval, ...]:
    return tuple(sorted((TimeInterval(*b) for b in blocks), key=lambda b: (b.start, b.end)))


def free_slots(occupied: Iterable[Tuple[datetime, datetime]], window: TimeInterval) -> Tuple[TimeInterval, ...]:
    """
    Free gaps of `window` not covered by any occupied block.
    Blocks may be unsorted, overlapping or outside the window; they are clipped
    and merged during a single sweep. Gaps come back sorted, non-overlapping,
    inside the window and never zero-length.
    """
    window = TimeInterval(*window)
    blocks = sort_blocks(occupied)
    logger.debug("free_slots: window=[%s, %s) occupied=%d", window.start, window.end, len(blocks))

    free: List[TimeInterval] = []
    cursor = window.start
    for block in blocks:
        clipped = block.clip(window)
        if clipped.is_empty:
            continue
        if clipped.start <= cursor:
            # overlaps or touches the current free region
            cursor = max(cursor, clipped.end)
            continue
        free.append(TimeInterval(cursor, clipped.start))
        cursor = max(cursor, clipped.end)
    if cursor < window.end:
        free.append(TimeInterval(cursor, window.end))

    logger.debug("free_slots: free_count=%d", len(free))
    return tuple(free)


def first_fit(free: Sequence[TimeInterval], duration_minutes: int) -> Optional[TimeInterval]:
    """Return [slot.start, slot.start + duration) of the earliest slot that fits, or None."""
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes!r}")
    needed = timedelta(minutes=duration_minutes)
    for slot in free:
        slot = TimeInterval(*slot)
        if slot.duration >= needed:
            placed = TimeInterval(slot.start, slot.start + needed)
            logger.debug("first_fit: %d min -> [%s, %s)", duration_minutes, placed.start, placed.end)
            return placed
    logger.debug("first_fit: %d min -> no fit among %d slots", duration_minutes, len(free))
    return None


def with_block(occupied: Iterable[Tuple[datetime, datetime]], block: Tuple[datetime, datetime]) -> Tuple[TimeInterval, ...]:
    """New sorted occupied set containing `block`. The input is left untouched."""
    return sort_blocks(list(occupied) + [block])


def is_self_created_title(title: Optional[str]) -> bool:
    """True for summaries that look like events this app creates (ticket codes, catalog meetings)."""
    summary = title or ""
    if SELF_EVENT_TICKET_PATTERN.match(summary):
        return True
    return any(meeting in summary for meeting in MEETING_TYPES)


def busy_from_events(events, window: TimeInterval, exclude_ids: Iterable[str] = ()) -> Tuple[TimeInterval, ...]:
    """
    Convert listed calendar events into occupied blocks clipped to the window.
    Skips all-day events, events this app created (by id, then by title pattern)
    and events that end up empty after clipping.
    """
    events = list(events)
    excluded = set(i for i in exclude_ids if i)
    busy = []
    for ev in events:
        if ev.is_all_day:
            logger.debug("busy_from_events: skip all-day id=%r", ev.id)
            continue
        if ev.id and ev.id in excluded:
            logger.debug("busy_from_events: skip own event id=%r", ev.id)
            continue
        if is_self_created_title(ev.title):
            logger.debug("busy_from_events: skip own-looking title=%r", ev.title)
            continue
        clipped = TimeInterval(ev.start, ev.end).clip(window)
        if clipped.is_empty:
            continue
        busy.append(clipped)
    logger.info("busy_from_events: events_in=%d busy=%d", len(events), len(busy))
    return sort_blocks(busy)
