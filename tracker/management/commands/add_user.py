from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import HandleNotFound, TrackerError
from tracker.services.codeforces import CodeforcesClient
from tracker.services.roster import add_user


class Command(BaseCommand):
    help = "Starts tracking a Codeforces handle after checking that it exists."

    def add_arguments(self, parser):
        parser.add_argument("handle")
        parser.add_argument(
            "--hidden",
            action="store_true",
            help="Track the user without listing it publicly.",
        )

    def handle(self, *args, **options):
        handle = options["handle"]
        try:
            user = add_user(handle, CodeforcesClient.from_settings())
        except HandleNotFound:
            raise CommandError(f"User '{handle}' was not found on Codeforces.")
        except TrackerError as exc:
            raise CommandError(str(exc))

        if options.get("hidden"):
            user.hidden = True
            user.save(update_fields=["hidden"])

        rating = user.rating if user.rating is not None else "unrated"
        self.stdout.write(
            self.style.SUCCESS(f"User '{user.handle}' created with id {user.id} (rating {rating}).")
        )
