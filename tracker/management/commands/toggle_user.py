from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import RosterError
from tracker.services.roster import set_enabled, set_hidden


class Command(BaseCommand):
    help = "Enables, disables, hides or shows a tracked user."

    def add_arguments(self, parser):
        parser.add_argument("handle")
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument("--enable", action="store_true")
        group.add_argument("--disable", action="store_true")
        group.add_argument("--hide", action="store_true")
        group.add_argument("--show", action="store_true")

    def handle(self, *args, **options):
        handle = options["handle"]
        try:
            if options["enable"] or options["disable"]:
                user = set_enabled(handle, bool(options["enable"]))
            else:
                user = set_hidden(handle, bool(options["hide"]))
        except RosterError as exc:
            raise CommandError(str(exc))

        state = "enabled" if user.enabled else "disabled"
        visibility = "hidden" if user.hidden else "visible"
        self.stdout.write(self.style.SUCCESS(f"{user.handle}: {state}, {visibility}."))
