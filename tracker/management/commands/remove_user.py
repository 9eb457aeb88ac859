from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import RosterError
from tracker.services.roster import remove_user


class Command(BaseCommand):
    help = "Stops tracking a user and deletes its submissions and stats."

    def add_arguments(self, parser):
        parser.add_argument("handle")
        parser.add_argument(
            "--yes",
            action="store_true",
            help="Skip the confirmation prompt.",
        )

    def handle(self, *args, **options):
        handle = options["handle"]
        if not options.get("yes"):
            answer = input(f"Delete '{handle}' and all of its submissions? [y/N] ")
            if answer.strip().lower() not in {"y", "yes"}:
                self.stdout.write(self.style.WARNING("Cancelled."))
                return

        try:
            removed = remove_user(handle)
        except RosterError as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(f"Removed '{handle}' ({removed} submissions)."))
