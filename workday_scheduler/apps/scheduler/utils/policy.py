'''
Name: apps/scheduler/utils/policy.py
Description: Duration and priority assignment for new work items.
'''

import random
from typing import Optional, Tuple

from .constants import (
    MEETING_DURATION,
    MEETING_TYPES,
    PRIORITY_ORDER,
    TICKET_DURATIONS,
    WorkItemKind,
)

_rng = random.Random()


def ticket_duration(rng: Optional[random.Random] = None) -> int:
    """Tickets take one or two hours, picked uniformly."""
    return (rng or _rng).choice(TICKET_DURATIONS)


def meeting_details(rng: Optional[random.Random] = None) -> Tuple[str, int]:
    """(title, duration) for a generated meeting."""
    return (rng or _rng).choice(MEETING_TYPES), MEETING_DURATION


def priority_tier(kind) -> int:
    try:
        return PRIORITY_ORDER[WorkItemKind(kind)]
    except (KeyError, ValueError):
        raise ValueError(f"unknown work item kind: {kind!r}")


def in_priority_order(items):
    """Meetings first, then tickets. Stable, so creation order holds within a tier."""
    return sorted(items, key=lambda item: priority_tier(item.kind))
