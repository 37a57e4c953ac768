'''
Name: apps/scheduler/forms.py
Description: Input validation for the task API.
                Ticket batches, meeting batches, title edits, schedule requests,
                list filters and screenshot uploads.
'''

from django import forms

from .utils.constants import (
    DEFAULT_MEETINGS_PER_BATCH,
    MAX_MEETINGS_PER_BATCH,
    WorkItemState,
)


class AddTicketsForm(forms.Form):
    '''List of ticket numbers typed in by the user, e.g. ["TMI-1951", "MKTG-1884"]'''

    tickets = forms.JSONField(
        error_messages={"required": "At least one ticket is required"},
    )

    def clean_tickets(self):
        tickets = self.cleaned_data["tickets"]
        if not isinstance(tickets, list) or not tickets:
            raise forms.ValidationError("At least one ticket is required")
        cleaned = []
        for ticket in tickets:
            if not isinstance(ticket, str) or not ticket.strip():
                raise forms.ValidationError("Ticket number cannot be empty")
            cleaned.append(ticket.strip())
        return cleaned


class AddMeetingsForm(forms.Form):
    '''How many generic meetings to generate (1-10, default 2)'''

    count = forms.IntegerField(
        required=False,
        min_value=1,
        max_value=MAX_MEETINGS_PER_BATCH,
    )

    def clean_count(self):
        count = self.cleaned_data.get("count")
        return DEFAULT_MEETINGS_PER_BATCH if count is None else count


class UpdateTitleForm(forms.Form):
    title = forms.CharField(
        max_length=500,
        error_messages={"required": "Title cannot be empty"},
    )


class ScheduleForm(forms.Form):
    '''Target day, as the calendar date in the scheduling zone'''

    date = forms.DateField(
        input_formats=["%Y-%m-%d"],
        error_messages={
            "required": "Invalid date format. Use ISO date string (YYYY-MM-DD)",
            "invalid": "Invalid date format. Use ISO date string (YYYY-MM-DD)",
        },
    )


class TaskFilterForm(forms.Form):
    status = forms.ChoiceField(choices=WorkItemState.choices, required=False)


class ScreenshotUploadForm(forms.Form):
    '''Board screenshot to extract tickets from'''

    screenshot = forms.FileField(
        error_messages={"required": "No screenshot file provided"},
    )
