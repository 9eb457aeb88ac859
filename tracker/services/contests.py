import logging
from datetime import datetime, timezone as dt_timezone

from django.db import transaction

from tracker.models import Contest
from tracker.services import metadata
from tracker.services.codeforces import CodeforcesClient

logger = logging.getLogger(__name__)

UPCOMING_PHASE = "BEFORE"


def _contest_defaults(row: dict) -> dict:
    start = row.get("startTimeSeconds")
    return {
        "name": row.get("name") or f"Contest {row['id']}",
        "contest_type": row.get("type") or "",
        "phase": row.get("phase") or "",
        "frozen": bool(row.get("frozen")),
        "duration_seconds": row.get("durationSeconds"),
        "start_time": datetime.fromtimestamp(start, tz=dt_timezone.utc) if start is not None else None,
    }


def sync_contests(client: CodeforcesClient) -> dict:
    rows = client.get_contest_list(gym=False)
    created = 0
    updated = 0
    with transaction.atomic():
        for row in rows:
            if row.get("id") is None:
                continue
            _, was_created = Contest.objects.update_or_create(
                contest_id=int(row["id"]),
                defaults=_contest_defaults(row),
            )
            if was_created:
                created += 1
            else:
                updated += 1
    metadata.mark_run(metadata.LAST_CONTEST_SYNC)
    upcoming = sum(1 for row in rows if row.get("phase") == UPCOMING_PHASE)
    logger.info("Contest sync created=%s updated=%s upcoming=%s", created, updated, upcoming)
    return {"created": created, "updated": updated, "upcoming": upcoming}


def cache_contest_problems(contest_id: int, client: CodeforcesClient, force: bool = False) -> list[dict]:
    contest = Contest.objects.filter(contest_id=contest_id).first()
    if contest and contest.problems and not force:
        return contest.problems

    standings = client.get_contest_standings(contest_id, start=1, count=1)
    problems = [
        {
            "index": problem.get("index"),
            "name": problem.get("name") or "",
            "rating": problem.get("rating"),
            "tags": problem.get("tags") or [],
        }
        for problem in standings.get("problems") or []
    ]
    info = standings.get("contest") or {"id": contest_id}
    defaults = _contest_defaults({**info, "id": contest_id})
    defaults["problems"] = problems
    Contest.objects.update_or_create(contest_id=contest_id, defaults=defaults)
    return problems


def upcoming_contests(limit: int = 20):
    return Contest.objects.filter(phase=UPCOMING_PHASE).order_by("start_time")[:limit]
