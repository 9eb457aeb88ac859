from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import NotConfigured
from tracker.services.codeforces import CodeforcesClient
from tracker.services.ingestion import track_user
from tracker.services.sweep import ingest_all_users


class Command(BaseCommand):
    help = "Pulls new accepted submissions from Codeforces for one, several or all enabled users."

    def add_arguments(self, parser):
        parser.add_argument(
            "handles",
            nargs="*",
            help="Handles to track. Without handles every enabled user is tracked.",
        )
        parser.add_argument(
            "--pause",
            type=float,
            help="Seconds to wait between users (defaults to TRACKER_USER_PAUSE_SECONDS).",
        )

    def handle(self, *args, **options):
        try:
            client = CodeforcesClient.from_settings()
        except NotConfigured as exc:
            raise CommandError(str(exc))

        handles = options.get("handles") or []
        if handles:
            results = [track_user(handle, client) for handle in handles]
        else:
            results = ingest_all_users(client, pause=options.get("pause")).results

        for result in results:
            if result.error:
                self.stdout.write(self.style.ERROR(f"{result.handle}: {result.error}"))
            elif result.disabled:
                self.stdout.write(self.style.WARNING(f"{result.handle}: not found on Codeforces, disabled"))
            else:
                self.stdout.write(f"{result.handle}: {result.new_submissions} new")

        total = sum(result.new_submissions for result in results)
        errors = sum(1 for result in results if result.error)
        self.stdout.write(
            self.style.SUCCESS(f"Tracking finished: {total} new submissions, {errors} errors.")
        )
        if handles and errors:
            raise CommandError(f"{errors} of {len(handles)} users failed.")
