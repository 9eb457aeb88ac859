from django.core.management.base import BaseCommand, CommandError

from tracker.models import TrackedUser
from tracker.services.roster import find_user
from tracker.services.scoring import recompute_score
from tracker.services.streaks import recompute_streak


class Command(BaseCommand):
    help = "Rebuilds score buckets and streaks from the stored submissions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--handle",
            help="Limits the rebuild to one user.",
        )

    def handle(self, *args, **options):
        handle = options.get("handle")
        qs = TrackedUser.objects.all()
        if handle:
            user = find_user(handle)
            if user is None:
                raise CommandError(f"User '{handle}' is not tracked.")
            qs = qs.filter(id=user.id)

        total = 0
        for user in qs.iterator(chunk_size=200):
            score = recompute_score(user.id)
            streak = recompute_streak(user.id)
            total += 1
            if handle:
                self.stdout.write(
                    f"{user.handle}: score={score.total_score} streak={streak.streak}"
                )

        self.stdout.write(self.style.SUCCESS(f"Rebuild finished for {total} users."))
