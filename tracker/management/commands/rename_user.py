from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import HandleNotFound, TrackerError
from tracker.services.codeforces import CodeforcesClient
from tracker.services.roster import rename_user


class Command(BaseCommand):
    help = "Changes the handle of a tracked user; the new handle must exist on Codeforces."

    def add_arguments(self, parser):
        parser.add_argument("current")
        parser.add_argument("new")

    def handle(self, *args, **options):
        current = options["current"]
        new = options["new"]
        try:
            user = rename_user(current, new, CodeforcesClient.from_settings())
        except HandleNotFound:
            raise CommandError(f"User '{new}' was not found on Codeforces.")
        except TrackerError as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(f"Renamed '{current}' -> '{user.handle}'."))
