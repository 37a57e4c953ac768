import json
from datetime import datetime
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse

from apps.scheduler.exceptions import (
    CalendarAuthError,
    CalendarReadError,
    ExtractionError,
    ScheduleInProgress,
)
from apps.scheduler.models import WorkItem
from apps.scheduler.utils.constants import WorkItemKind, WorkItemState
from apps.scheduler.utils.orchestrator import ScheduleResult
from apps.scheduler.utils.scheduler import TimeInterval
from apps.scheduler.utils.screenshot import ExtractedTicket, ExtractionResult
from apps.scheduler.utils.timewindow import UTC

User = get_user_model()


class TaskApiTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username="viewer", password="pass")
        self.other = User.objects.create_user(username="someone", password="pass")
        self.client.login(username="viewer", password="pass")

    def post_json(self, name, data, **kwargs):
        return self.client.post(reverse(name, kwargs=kwargs), data=json.dumps(data), content_type="application/json")

    def make_item(self, owner=None, **fields):
        defaults = dict(kind=WorkItemKind.TICKET, label="OPS-1", title="OPS-1", duration_minutes=60)
        defaults.update(fields)
        return WorkItem.objects.create(owner=owner or self.user, **defaults)

    # -----------------------------------
    # Adding and listing
    # -----------------------------------
    def test_login_required(self):
        self.client.logout()
        response = self.client.get(reverse("scheduler:tasks"))
        self.assertEqual(response.status_code, 302)

        login = self.client.get(response["Location"])
        self.assertEqual(login.status_code, 200)
        self.assertTemplateUsed(login, "registration/login.html")

    def test_sign_in_and_out(self):
        self.client.logout()
        response = self.client.post(reverse("login"), {"username": "viewer", "password": "pass"})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(self.client.get(reverse("scheduler:tasks")).status_code, 200)

        response = self.client.post(reverse("logout"))
        self.assertTemplateUsed(response, "registration/logged_out.html")

    def test_add_tickets(self):
        response = self.post_json("scheduler:tasks", {"tickets": ["TMI-1951", " MKTG-1884 "]})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([t["label"] for t in body["tasks"]], ["TMI-1951", "MKTG-1884"])
        self.assertEqual(body["message"], "2 task(s) added successfully")
        self.assertEqual(WorkItem.objects.for_user(self.user).pending().count(), 2)

    def test_add_tickets_rejects_empty_input(self):
        for payload in ({"tickets": []}, {"tickets": ["OPS-1", "  "]}, {}):
            response = self.post_json("scheduler:tasks", payload)
            self.assertEqual(response.status_code, 400, payload)
            self.assertIn("error", response.json())
        self.assertEqual(WorkItem.objects.count(), 0)

    def test_list_is_scoped_and_filterable(self):
        pending = self.make_item()
        done = self.make_item(label="OPS-2", title="OPS-2", state=WorkItemState.SCHEDULED)
        self.make_item(owner=self.other)

        body = self.client.get(reverse("scheduler:tasks")).json()
        self.assertEqual([t["id"] for t in body["tasks"]], [done.pk, pending.pk])

        body = self.client.get(reverse("scheduler:tasks"), {"status": "pending"}).json()
        self.assertEqual([t["id"] for t in body["tasks"]], [pending.pk])

        response = self.client.get(reverse("scheduler:tasks"), {"status": "archived"})
        self.assertEqual(response.status_code, 400)

    def test_add_meetings(self):
        response = self.post_json("scheduler:add_meetings", {})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["meetings"]), 2)

        response = self.post_json("scheduler:add_meetings", {"count": 4})
        self.assertEqual(len(response.json()["meetings"]), 4)

        for count in (0, 11):
            self.assertEqual(self.post_json("scheduler:add_meetings", {"count": count}).status_code, 400)
        self.assertEqual(WorkItem.objects.filter(kind=WorkItemKind.MEETING).count(), 6)

    # -----------------------------------
    # Editing and deleting
    # -----------------------------------
    def patch_title(self, item_id, title):
        return self.client.patch(
            reverse("scheduler:update_title", kwargs={"task_id": item_id}),
            data=json.dumps({"title": title}),
            content_type="application/json",
        )

    def test_update_title(self):
        item = self.make_item()
        response = self.patch_title(item.pk, "Rotate keys")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["task"]["title"], "Rotate keys")

    def test_update_title_of_scheduled_item(self):
        item = self.make_item(state=WorkItemState.SCHEDULED)
        response = self.patch_title(item.pk, "Rotate keys")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Can only edit pending tasks")

    def test_update_title_validation(self):
        item = self.make_item()
        self.assertEqual(self.patch_title(item.pk, "").status_code, 400)
        self.assertEqual(self.patch_title(item.pk, "x" * 501).status_code, 400)

    def test_other_users_items_are_not_found(self):
        foreign = self.make_item(owner=self.other)
        self.assertEqual(self.patch_title(foreign.pk, "Mine now").status_code, 404)
        response = self.client.delete(reverse("scheduler:delete_task", kwargs={"task_id": foreign.pk}))
        self.assertEqual(response.status_code, 404)
        self.assertTrue(WorkItem.objects.filter(pk=foreign.pk).exists())

    def test_delete(self):
        item = self.make_item()
        response = self.client.delete(reverse("scheduler:delete_task", kwargs={"task_id": item.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(WorkItem.objects.filter(pk=item.pk).exists())

        scheduled = self.make_item(state=WorkItemState.SCHEDULED)
        response = self.client.delete(reverse("scheduler:delete_task", kwargs={"task_id": scheduled.pk}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Can only delete pending tasks")

    def test_wrong_method(self):
        item = self.make_item()
        response = self.client.get(reverse("scheduler:delete_task", kwargs={"task_id": item.pk}))
        self.assertEqual(response.status_code, 405)

    # -----------------------------------
    # Screenshot extraction
    # -----------------------------------
    def upload(self):
        shot = SimpleUploadedFile("board.png", b"\x89PNG\r\n\x1a\nfake", content_type="image/png")
        return self.client.post(reverse("scheduler:extract_tasks"), {"screenshot": shot})

    @patch("apps.scheduler.views.extract_tickets")
    def test_extract(self, mock_extract):
        mock_extract.return_value = ExtractionResult([
            ExtractedTicket("TMI-1951", "Income shifting"),
            ExtractedTicket("MKTG-1884"),
        ])
        response = self.upload()
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["tickets"], ["TMI-1951", "MKTG-1884"])
        self.assertFalse(body["partial"])
        titles = list(WorkItem.objects.for_user(self.user).in_creation_order().values_list("title", flat=True))
        self.assertEqual(titles, ["Income shifting", "MKTG-1884"])
        self.assertEqual(mock_extract.call_args.args[0], b"\x89PNG\r\n\x1a\nfake")

    @patch("apps.scheduler.views.extract_tickets")
    def test_extract_nothing_found(self, mock_extract):
        mock_extract.return_value = ExtractionResult()
        response = self.upload()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "No tasks found in the screenshot")
        self.assertEqual(WorkItem.objects.count(), 0)

    @patch("apps.scheduler.views.extract_tickets", side_effect=ExtractionError("model down"))
    def test_extract_failure(self, mock_extract):
        self.assertEqual(self.upload().status_code, 502)

    def test_extract_requires_file(self):
        response = self.client.post(reverse("scheduler:extract_tasks"), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "No screenshot file provided")

    # -----------------------------------
    # Scheduling
    # -----------------------------------
    @patch("apps.scheduler.views.schedule_pending")
    def test_schedule(self, mock_schedule):
        mock_schedule.return_value = ScheduleResult(scheduled=3, failed=1)
        response = self.post_json("scheduler:schedule", {"date": "2026-03-09"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"scheduled": 3, "failed": 1, "message": "Scheduled 3 task(s), 1 failed"})
        self.assertEqual(mock_schedule.call_args.args, (self.user, "2026-03-09"))

    @patch("apps.scheduler.views.schedule_pending")
    def test_schedule_bad_date(self, mock_schedule):
        for payload in ({"date": "03/09/2026"}, {"date": "2026-02-30"}, {}):
            response = self.post_json("scheduler:schedule", payload)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["error"], "Invalid date format. Use ISO date string (YYYY-MM-DD)")
        mock_schedule.assert_not_called()

    @patch("apps.scheduler.views.schedule_pending")
    def test_schedule_errors(self, mock_schedule):
        cases = [
            (CalendarAuthError("No account found for this user"), 401),
            (ScheduleInProgress("busy"), 409),
            (CalendarReadError("Failed to fetch calendar events"), 502),
        ]
        for exc, status in cases:
            mock_schedule.side_effect = exc
            response = self.post_json("scheduler:schedule", {"date": "2026-03-09"})
            self.assertEqual(response.status_code, status)
            self.assertEqual(response.json()["error"], str(exc))

    def test_scheduled_item_serialization(self):
        item = self.make_item()
        slot = TimeInterval(datetime(2026, 3, 9, 14, tzinfo=UTC), datetime(2026, 3, 9, 15, tzinfo=UTC))
        item.mark_scheduled(slot, "evt-1")
        task = self.client.get(reverse("scheduler:tasks")).json()["tasks"][0]
        self.assertEqual(task["state"], "scheduled")
        self.assertEqual(task["calendar_event_id"], "evt-1")
        self.assertTrue(task["scheduled_start"].startswith("2026-03-09T14:00:00"))
