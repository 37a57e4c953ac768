'''
Name: apps/scheduler/utils/google_calendar.py
Description: Google Calendar access for a single user.
                GoogleCalendarStore.for_user  -> authenticated store or CalendarAuthError
                GoogleCalendarStore.list_events -> events overlapping a window
                GoogleCalendarStore.create_event -> id of the created event
                GoogleCalendarStore.delete_event -> remove an event it created
'''

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from django.conf import settings
from django.utils.dateparse import parse_datetime
from django.utils.timezone import is_naive
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from ..exceptions import CalendarAuthError, CalendarReadError, CalendarWriteError
from .constants import (
    CALENDAR_EVENT_COLOR,
    CALENDAR_ID,
    GOOGLE_CALENDAR_SCOPES,
    GOOGLE_PROVIDER,
    LOGGER_NAME,
)
from .scheduler import TimeInterval
from .timewindow import UTC, get_zone, localize, to_civil, zone_name

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: Optional[datetime]
    end: Optional[datetime]
    is_all_day: bool = False


def _parse_event_time(field: dict, zone) -> Optional[datetime]:
    """Timed events carry 'dateTime'; all-day events only carry 'date'."""
    raw = (field or {}).get("dateTime")
    if not raw:
        return None
    dt = parse_datetime(raw)
    if dt is None:
        raise CalendarReadError(f"Unreadable event time {raw!r}")
    if is_naive(dt):
        dt = localize(dt, (field or {}).get("timeZone") or zone)
    return dt.astimezone(UTC)


def parse_event(item: dict, zone=None) -> CalendarEvent:
    """Raw Calendar API event -> CalendarEvent."""
    start = _parse_event_time(item.get("start"), zone)
    end = _parse_event_time(item.get("end"), zone)
    return CalendarEvent(
        id=item.get("id") or "",
        title=item.get("summary") or "",
        start=start,
        end=end,
        is_all_day=start is None or end is None,
    )


class GoogleCalendarStore:
    """Primary Google calendar of one user."""

    def __init__(self, service, zone=None, calendar_id: str = CALENDAR_ID):
        self.service = service
        self.zone = get_zone(zone)
        self.calendar_id = calendar_id

    @classmethod
    def for_user(cls, user, zone=None) -> "GoogleCalendarStore":
        '''
        Build a store from the user's linked Google account.
        Raises CalendarAuthError when there is nothing usable to authenticate with.
        '''
        # deferred: models imports utils
        from ..models import CalendarAccount

        account = CalendarAccount.objects.filter(owner=user).first()
        if account is None:
            raise CalendarAuthError("No account found for this user")
        if account.provider != GOOGLE_PROVIDER:
            raise CalendarAuthError(
                f"Google account not connected. Found provider: {account.provider}. Please sign in with Google."
            )
        if not account.access_token:
            raise CalendarAuthError("No access token found. Please re-authenticate with Google.")

        creds = Credentials(
            token=account.access_token,
            refresh_token=account.refresh_token or None,
            token_uri=settings.GOOGLE_TOKEN_URI,
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            scopes=GOOGLE_CALENDAR_SCOPES,
        )
        try:
            service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        except Exception as e:
            logger.exception("for_user: could not build calendar service for user=%s", user.pk)
            raise CalendarAuthError(f"Could not connect to Google Calendar: {e}") from e
        logger.debug("for_user: calendar service ready for user=%s", user.pk)
        return cls(service, zone=zone)

    def list_events(self, window: TimeInterval) -> List[CalendarEvent]:
        '''
        Every event overlapping the window, all-day ones included (flagged).
        Recurring events come back expanded into single instances.
        '''
        events = []
        page_token = None
        try:
            while True:
                response = self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=window.start.isoformat(),
                    timeMax=window.end.isoformat(),
                    timeZone=zone_name(self.zone),
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                ).execute()
                for item in response.get("items", []):
                    events.append(parse_event(item, self.zone))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except CalendarReadError:
            raise
        except Exception as e:
            logger.exception("list_events: calendar read failed")
            raise CalendarReadError(f"Failed to fetch calendar events: {e}") from e
        logger.info("list_events: window=[%s, %s) events=%d", window.start, window.end, len(events))
        return events

    def create_event(self, title: str, start: datetime, end: datetime, description: Optional[str] = None) -> str:
        '''
        Insert a timed event. Start/end go out as civil time plus zone name.
        '''
        start_civil, tz_name = to_civil(start, self.zone)
        end_civil, _ = to_civil(end, self.zone)
        body = {
            "summary": title,
            "description": description or f"Auto-scheduled: {title}",
            "start": {"dateTime": start_civil, "timeZone": tz_name},
            "end": {"dateTime": end_civil, "timeZone": tz_name},
            "colorId": CALENDAR_EVENT_COLOR,
        }
        logger.info("create_event: %r from %s to %s (%s)", title, start_civil, end_civil, tz_name)
        try:
            created = self.service.events().insert(calendarId=self.calendar_id, body=body).execute()
        except Exception as e:
            logger.error("create_event: calendar API error for %r: %s", title, e)
            raise CalendarWriteError(f"Failed to create calendar event: {e}") from e
        event_id = created.get("id") or ""
        logger.info("create_event: created id=%r", event_id)
        return event_id

    def delete_event(self, event_id: str) -> None:
        '''
        Remove an event this app created.
        '''
        logger.info("delete_event: id=%r", event_id)
        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=event_id).execute()
        except Exception as e:
            logger.error("delete_event: calendar API error for id=%r: %s", event_id, e)
            raise CalendarWriteError(f"Failed to delete calendar event: {e}") from e
