'''
Name: apps/scheduler/utils/timewindow.py
Description: Civil time <-> absolute instant conversion for the scheduling zone.
                The UTC offset is resolved for each specific date, so windows on
                either side of a daylight-saving change land on the right instant
                no matter what zone the server runs in.
'''

import logging
from datetime import date, datetime, time, timedelta
from typing import Tuple

import pytz
from django.conf import settings
from django.core.exceptions import ValidationError

from .constants import LOGGER_NAME, WORKDAY_START, WORKDAY_END
from .scheduler import TimeInterval

logger = logging.getLogger(LOGGER_NAME)

UTC = pytz.UTC


def get_zone(zone=None):
    """Accept a tz name, a tzinfo, or None (settings.SCHEDULER_TIME_ZONE)."""
    if zone is None:
        zone = settings.SCHEDULER_TIME_ZONE
    if isinstance(zone, str):
        return pytz.timezone(zone)
    return zone


def parse_day(date_str) -> date:
    """'YYYY-MM-DD' -> date. Raises ValidationError on anything else."""
    if isinstance(date_str, date):
        return date_str
    try:
        return date.fromisoformat(str(date_str).strip())
    except ValueError:
        raise ValidationError("Invalid date format. Use ISO date string (YYYY-MM-DD)", code="invalid_date")


def zone_offset(day: date, zone=None) -> timedelta:
    """
    UTC offset of `zone` in effect on `day`.
    Shows 12:00 UTC of that day in the zone and reads the wall clock back;
    the difference between the two wall clocks is the offset (e.g. -6h for CST, -5h for CDT).
    """
    tz = get_zone(zone)
    utc_noon = datetime.combine(day, time(12, 0), tzinfo=UTC)
    shown = utc_noon.astimezone(tz)
    return shown.replace(tzinfo=None) - utc_noon.replace(tzinfo=None)


def _format_offset(offset: timedelta) -> str:
    total = int(offset.total_seconds()) // 60
    sign = "+" if total >= 0 else "-"
    hours, minutes = divmod(abs(total), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def to_civil_iso(day: date, hour: int, minute: int = 0, zone=None) -> str:
    """
    Offset-qualified ISO stamp for a wall-clock time in the zone.
    Example: to_civil_iso(date(2026, 2, 9), 9) -> '2026-02-09T09:00:00-06:00'
    """
    offset = zone_offset(day, zone)
    return f"{day.isoformat()}T{hour:02d}:{minute:02d}:00{_format_offset(offset)}"


def civil_instant(day, hour: int, minute: int = 0, zone=None) -> datetime:
    """Absolute instant (UTC-aware) for `hour:minute` on `day` in the zone."""
    day = parse_day(day)
    stamp = to_civil_iso(day, hour, minute, zone)
    out = datetime.fromisoformat(stamp).astimezone(UTC)
    logger.debug("civil_instant: %s -> %s", stamp, out)
    return out


def day_window(date_str, zone=None) -> TimeInterval:
    """The [09:00, 18:00) work window of `date_str` as absolute instants."""
    day = parse_day(date_str)
    start = civil_instant(day, *WORKDAY_START, zone=zone)
    end = civil_instant(day, *WORKDAY_END, zone=zone)
    return TimeInterval(start, end)


def to_civil(instant: datetime, zone=None) -> Tuple[str, str]:
    """
    Absolute instant -> (naive civil 'YYYY-MM-DDTHH:MM:SS', zone name).
    Calendar APIs get this pair instead of a UTC stamp so their own DST
    resolution matches ours.
    """
    tz = get_zone(zone)
    if instant.tzinfo is None:
        raise ValueError("to_civil needs a timezone-aware datetime")
    local = instant.astimezone(tz)
    return local.strftime("%Y-%m-%dT%H:%M:%S"), zone_name(tz)


def zone_name(zone=None) -> str:
    tz = get_zone(zone)
    return getattr(tz, "zone", None) or str(tz)


def localize(naive: datetime, zone=None) -> datetime:
    """Attach the zone to a naive wall-clock datetime (pytz needs localize, not replace)."""
    tz = get_zone(zone)
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)
