"""
Contest history of tracked users.

``user.rating`` lists the rated contests of a handle. Each entry is stored
together with the problems of that contest, read from the ``Contest.problems``
cache (filled from ``contest.standings`` on a miss), and the user's verdict
on each problem.
"""
import logging
import time

from django.conf import settings
from django.utils import timezone

from tracker.exceptions import HandleNotFound, TrackerError
from tracker.models import Contest, TrackedUser
from tracker.services import metadata
from tracker.services.codeforces import CodeforcesClient
from tracker.services.contests import cache_contest_problems
from tracker.services.submissions import ACCEPTED_VERDICT

logger = logging.getLogger(__name__)


def problem_sort_key(index: str) -> tuple[int, str]:
    # A, B, ..., Z before A1, B2
    return len(index), index


def verdicts_by_contest(submissions: list[dict]) -> dict[int, dict[str, str | None]]:
    """First verdict seen per problem, replaced by an accepted one when it shows up later."""
    verdicts: dict[int, dict[str, str | None]] = {}
    for event in submissions:
        contest_id = event.get("contestId")
        index = (event.get("problem") or {}).get("index")
        if contest_id is None or not index:
            continue
        contest = verdicts.setdefault(contest_id, {})
        verdict = event.get("verdict")
        if index not in contest or (verdict == ACCEPTED_VERDICT and contest[index] != ACCEPTED_VERDICT):
            contest[index] = verdict
    return verdicts


def enrich_rating_history(
    history: list[dict],
    submissions: list[dict],
    problems_by_contest: dict[int, list[dict]],
) -> list[dict]:
    verdicts = verdicts_by_contest(submissions)
    enriched = []
    for entry in history:
        attempted = verdicts.get(entry.get("contestId"), {})
        problems = [
            {
                "index": problem.get("index") or "",
                "name": problem.get("name") or "",
                "rating": problem.get("rating"),
                "tags": problem.get("tags") or [],
                "verdict": attempted.get(problem.get("index")),
                "attempted": problem.get("index") in attempted,
            }
            for problem in problems_by_contest.get(entry.get("contestId")) or []
        ]
        problems.sort(key=lambda problem: problem_sort_key(problem["index"]))
        enriched.append({**entry, "problems": problems})
    return enriched


def load_contest_problems(
    contest_ids: list[int],
    client: CodeforcesClient,
    pause: float | None = None,
    sleep=time.sleep,
) -> dict[int, list[dict]]:
    """
    Problems of the given contests. Cached contests are read in one query;
    the rest are fetched one by one with a pause in between. A contest whose
    standings cannot be fetched maps to an empty list and is retried on the
    next run.
    """
    if pause is None:
        pause = float(getattr(settings, "CF_PROBLEM_CACHE_PAUSE_SECONDS", 0.2))

    problems = {
        contest_id: cached
        for contest_id, cached in Contest.objects.filter(contest_id__in=contest_ids).values_list("contest_id", "problems")
        if cached
    }
    for contest_id in contest_ids:
        if contest_id in problems:
            continue
        try:
            problems[contest_id] = cache_contest_problems(contest_id, client)
        except TrackerError as exc:
            logger.warning("Contest %s: could not cache problems (%s)", contest_id, exc)
            problems[contest_id] = []
        if pause > 0:
            sleep(pause)
    return problems


def fetch_rating_history(user: TrackedUser, client: CodeforcesClient, sleep=time.sleep) -> list[dict]:
    history = client.get_user_rating(user.handle)
    if not history:
        return []

    submissions = client.get_user_submissions(
        user.handle,
        count=int(getattr(settings, "CF_RATING_SUBMISSIONS_COUNT", 5000)),
    )
    contest_ids = list(dict.fromkeys(entry["contestId"] for entry in history if entry.get("contestId") is not None))
    problems = load_contest_problems(contest_ids, client, sleep=sleep)
    return enrich_rating_history(history, submissions, problems)


def refresh_rating_history(user: TrackedUser, client: CodeforcesClient, sleep=time.sleep) -> int:
    history = fetch_rating_history(user, client, sleep=sleep)
    user.rating_history = history
    user.rating_history_updated = timezone.now()
    user.save(update_fields=["rating_history", "rating_history_updated"])
    return len(history)


def refresh_all_rating_histories(client=None, pause: float | None = None, sleep=time.sleep) -> dict:
    """Rebuild the stored history of every enabled user; a failing user keeps its previous history."""
    if client is None:
        client = CodeforcesClient.from_settings()
    if pause is None:
        pause = float(getattr(settings, "TRACKER_USER_PAUSE_SECONDS", 0.5))

    updated = 0
    errors = 0
    for user in TrackedUser.objects.filter(enabled=True).order_by("handle"):
        try:
            contests = refresh_rating_history(user, client, sleep=sleep)
        except HandleNotFound:
            logger.warning("%s: not found while refreshing rating history; the next sweep disables it", user.handle)
            errors += 1
        except TrackerError as exc:
            logger.warning("%s: could not refresh rating history (%s)", user.handle, exc)
            errors += 1
        else:
            logger.debug("%s: %s rated contests", user.handle, contests)
            updated += 1
        if pause > 0:
            sleep(pause)

    metadata.mark_run(metadata.LAST_RATING_SYNC)
    logger.info("Rating history sync finished updated=%s errors=%s", updated, errors)
    return {"updated": updated, "errors": errors}
