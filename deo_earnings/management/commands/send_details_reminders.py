from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from ...models import WithdrawalRequest
from ...notifications import notify_details_reminder


class Command(BaseCommand):
    help = "Remind DEOs whose withdrawal requests are still waiting on payment details."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=getattr(settings, "DEO_DETAILS_REMINDER_DAYS", 7),
            help="Only remind about requests that have waited at least this many days (default: 7).",
        )

    def handle(self, *args, **options):
        days = options["days"]
        cutoff = timezone.now() - timedelta(days=days)
        stale = WithdrawalRequest.objects.details_requested_before(cutoff).select_related("deo")
        count = 0
        for request_obj in stale:
            notify_details_reminder(request_obj)
            count += 1
        self.stdout.write(self.style.SUCCESS(f"Sent {count} payment details reminder(s)."))
