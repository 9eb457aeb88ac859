from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import TrackerError
from tracker.services.codeforces import CodeforcesClient
from tracker.services.rating_history import refresh_all_rating_histories, refresh_rating_history
from tracker.services.roster import find_user


class Command(BaseCommand):
    help = "Rebuilds the stored contest history of one or every enabled user."

    def add_arguments(self, parser):
        parser.add_argument("--handle", help="Only refresh this user.")
        parser.add_argument(
            "--pause",
            type=float,
            help="Seconds to wait between users (defaults to TRACKER_USER_PAUSE_SECONDS).",
        )

    def handle(self, *args, **options):
        handle = options.get("handle")
        try:
            client = CodeforcesClient.from_settings()
            if handle:
                user = find_user(handle)
                if user is None:
                    raise CommandError(f"User '{handle}' is not tracked")
                contests = refresh_rating_history(user, client)
                self.stdout.write(self.style.SUCCESS(f"{user.handle}: {contests} rated contests stored."))
                return
            stats = refresh_all_rating_histories(client, pause=options.get("pause"))
        except TrackerError as exc:
            raise CommandError(str(exc))

        self.stdout.write(
            self.style.SUCCESS(f"Rating histories refreshed: {stats['updated']} users, {stats['errors']} errors.")
        )
