from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import TrackerError
from tracker.services.codeforces import CodeforcesClient
from tracker.services.contests import cache_contest_problems, sync_contests


class Command(BaseCommand):
    help = "Refreshes the Codeforces contest list, or the problem cache of given contests."

    def add_arguments(self, parser):
        parser.add_argument(
            "--problems",
            nargs="+",
            type=int,
            metavar="CONTEST_ID",
            help="Fetch and cache the problems of these contests instead.",
        )

    def handle(self, *args, **options):
        try:
            client = CodeforcesClient.from_settings()
            if options.get("problems"):
                for contest_id in options["problems"]:
                    problems = cache_contest_problems(contest_id, client, force=True)
                    self.stdout.write(f"{contest_id}: {len(problems)} problems cached")
                return
            stats = sync_contests(client)
        except TrackerError as exc:
            raise CommandError(str(exc))

        self.stdout.write(
            self.style.SUCCESS(
                f"Contests synced: {stats['created']} new, {stats['updated']} updated, "
                f"{stats['upcoming']} upcoming."
            )
        )
