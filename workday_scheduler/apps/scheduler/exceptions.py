'''
Name: apps/scheduler/exceptions.py
Description: Errors raised by the scheduler app.
                Validation problems use django.core.exceptions.ValidationError instead.
'''


class SchedulerError(Exception):
    """Base class for scheduler failures."""


class CalendarError(SchedulerError):
    """Talking to the user's calendar failed."""


class CalendarAuthError(CalendarError):
    """No usable calendar credential for the user. Aborts a scheduling run."""


class CalendarReadError(CalendarError):
    """Listing existing events failed. Aborts a scheduling run."""


class CalendarWriteError(CalendarError):
    """Creating an event failed. Only the current item is affected."""


class ExtractionError(SchedulerError):
    """The screenshot extraction call failed."""


class ScheduleInProgress(SchedulerError):
    """Another scheduling run already holds the user's lock."""
