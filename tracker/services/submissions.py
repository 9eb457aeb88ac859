from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from django.conf import settings

ACCEPTED_VERDICT = "OK"


@dataclass(frozen=True)
class CanonicalSubmission:
    contest_id: int
    problem_index: str
    problem_name: str
    rating: int | None
    tags: tuple[str, ...]
    submission_time: datetime

    @property
    def key(self) -> tuple[int, str]:
        return self.contest_id, self.problem_index


def get_cutoff_timestamp() -> int:
    return int(getattr(settings, "CF_SUBMISSION_CUTOFF", 0))


def is_accepted(event: dict[str, Any]) -> bool:
    return event.get("verdict") == ACCEPTED_VERDICT


def to_canonical(event: dict[str, Any]) -> CanonicalSubmission | None:
    problem = event.get("problem") or {}
    contest_id = problem.get("contestId", event.get("contestId"))
    index = problem.get("index")
    created = event.get("creationTimeSeconds")
    if contest_id is None or not index or created is None:
        return None

    rating = problem.get("rating")
    return CanonicalSubmission(
        contest_id=int(contest_id),
        problem_index=str(index),
        problem_name=problem.get("name") or "",
        rating=int(rating) if rating is not None else None,
        tags=tuple(str(tag) for tag in problem.get("tags") or ()),
        submission_time=datetime.fromtimestamp(int(created), tz=timezone.utc),
    )


def normalize_submissions(
    raw_events: Iterable[dict[str, Any]],
    cutoff: int | None = None,
) -> list[CanonicalSubmission]:
    """
    Keep accepted events created at or after the cutoff, one per
    (contest, problem). The API lists newest first, so the first
    occurrence kept is the most recent accepted attempt.
    """
    if cutoff is None:
        cutoff = get_cutoff_timestamp()

    seen = set()
    result = []
    for event in raw_events:
        if not is_accepted(event):
            continue
        created = event.get("creationTimeSeconds")
        if created is None or int(created) < cutoff:
            continue
        submission = to_canonical(event)
        if submission is None or submission.key in seen:
            continue
        seen.add(submission.key)
        result.append(submission)
    return result
