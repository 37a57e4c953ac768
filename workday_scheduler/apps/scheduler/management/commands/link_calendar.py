'''
Name: apps/scheduler/management/commands/link_calendar.py
Description: Store (or replace) the Google OAuth tokens a user schedules against.
                python manage.py link_calendar <username> --access-token ... [--refresh-token ...]
'''

import logging

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from ...models import CalendarAccount
from ...utils.constants import GOOGLE_PROVIDER, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class Command(BaseCommand):
    help = "Link a user's Google Calendar by storing its OAuth tokens"

    def add_arguments(self, parser):
        parser.add_argument("username")
        parser.add_argument("--access-token", required=True)
        parser.add_argument("--refresh-token", default=None)
        parser.add_argument("--provider", default=GOOGLE_PROVIDER)

    def handle(self, *args, **options):
        User = get_user_model()
        try:
            user = User.objects.get(username=options["username"])
        except User.DoesNotExist:
            raise CommandError(f"No user named {options['username']!r}")

        access_token = options["access_token"].strip()
        if not access_token:
            raise CommandError("Access token cannot be empty")

        account, created = CalendarAccount.objects.update_or_create(
            owner=user,
            defaults={
                "provider": options["provider"],
                "access_token": access_token,
                "refresh_token": options["refresh_token"] or None,
            },
        )
        logger.info("link_calendar: user=%s provider=%s created=%s", user.pk, account.provider, created)
        verb = "Linked" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} {account.provider} calendar for {user.username}"))
