import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from tracker.exceptions import (
    HandleNotFound,
    PersistenceError,
    RosterError,
    TrackerError,
    TransportError,
)
from tracker.locks import handle_lock
from tracker.models import Submission, TrackedUser, UserStats
from tracker.services.codeforces import CodeforcesClient, absolute_avatar_url
from tracker.services.roster import find_user
from tracker.services.scoring import recompute_score
from tracker.services.streaks import recompute_streak
from tracker.services.submissions import CanonicalSubmission, normalize_submissions

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    handle: str
    new_submissions: int = 0
    error: str | None = None
    disabled: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


def page_size_for(user: TrackedUser) -> int:
    # First ingestion pulls a deeper window so new users get their backfill.
    if user.last_submission_time is None:
        return int(getattr(settings, "CF_SYNC_INITIAL_COUNT", 500))
    return int(getattr(settings, "CF_SYNC_RECENT_COUNT", 100))


def disable_user(user: TrackedUser) -> None:
    user.enabled = False
    user.save(update_fields=["enabled"])
    logger.warning("%s no longer exists on Codeforces; user disabled", user.handle)


def refresh_profile(user: TrackedUser, client: CodeforcesClient) -> None:
    info = client.get_user_info(user.handle)
    user.rating = info.get("rating")
    user.rank = info.get("rank") or ""
    avatar = absolute_avatar_url(info.get("avatar") or info.get("titlePhoto"))
    if avatar:
        user.avatar_url = avatar
    user.save(update_fields=["rating", "rank", "avatar_url"])


def store_submissions(user: TrackedUser, batch: list[CanonicalSubmission]) -> int:
    """Insert the batch, ignoring rows that already exist. Returns how many rows are new."""
    if not batch:
        return 0

    rows = [
        Submission(
            user=user,
            contest_id=sub.contest_id,
            problem_index=sub.problem_index,
            problem_name=sub.problem_name,
            rating=sub.rating,
            tags=list(sub.tags),
            submission_time=sub.submission_time,
        )
        for sub in batch
    ]
    try:
        with transaction.atomic():
            before = Submission.objects.filter(user=user).count()
            Submission.objects.bulk_create(rows, ignore_conflicts=True)
            after = Submission.objects.filter(user=user).count()
    except DatabaseError as exc:
        raise PersistenceError(f"Could not store submissions for {user.handle}: {exc}") from exc
    return after - before


def caches_stale(user: TrackedUser) -> bool:
    """True when stored submissions are ahead of the cursor or the stats row is missing."""
    latest = user.submissions.aggregate(latest=Max("submission_time"))["latest"]
    if latest is None:
        return False
    if user.last_submission_time is None or user.last_submission_time < latest:
        return True
    return not UserStats.objects.filter(user_id=user.id).exists()


def rebuild_user_caches(user: TrackedUser, now: datetime | None = None) -> None:
    """
    Advance the cursor to the newest stored submission and rebuild score and
    streak. Runs after the submissions are committed, so a failure here is
    repaired by the next pass through ``caches_stale``.
    """
    try:
        with transaction.atomic():
            latest = user.submissions.aggregate(latest=Max("submission_time"))["latest"]
            update_fields = ["last_updated"]
            if latest is not None and (user.last_submission_time is None or latest > user.last_submission_time):
                user.last_submission_time = latest
                update_fields.append("last_submission_time")
            user.last_updated = now or timezone.now()
            user.save(update_fields=update_fields)
            recompute_score(user.id)
            recompute_streak(user.id)
    except DatabaseError as exc:
        raise PersistenceError(f"Could not update caches for {user.handle}: {exc}") from exc


def _ingest_locked(user: TrackedUser, client: CodeforcesClient) -> IngestResult:
    try:
        refresh_profile(user, client)
    except HandleNotFound:
        disable_user(user)
        return IngestResult(user.handle, disabled=True)
    except TransportError as exc:
        # Profile data is cosmetic; keep going with submissions.
        logger.warning("%s: could not refresh profile (%s)", user.handle, exc)

    try:
        raw = client.get_user_submissions(user.handle, count=page_size_for(user))
    except HandleNotFound:
        disable_user(user)
        return IngestResult(user.handle, disabled=True)

    batch = normalize_submissions(raw)
    new_count = store_submissions(user, batch)
    if new_count or caches_stale(user):
        rebuild_user_caches(user)

    logger.info(
        "%s: fetched=%s valid=%s new=%s",
        user.handle,
        len(raw),
        len(batch),
        new_count,
    )
    return IngestResult(user.handle, new_submissions=new_count)


def ingest_user(handle: str, client: CodeforcesClient | None = None) -> IngestResult:
    """
    Pull the latest submissions of one tracked user and merge them.

    Transport and persistence failures propagate; an unknown handle
    disables the user and is reported through ``IngestResult.disabled``.
    """
    user = find_user(handle)
    if user is None:
        raise RosterError(f"{handle} is not tracked")

    with handle_lock(user.handle) as acquired:
        if not acquired:
            return IngestResult(user.handle, error="ingestion already running")
        return _ingest_locked(user, client or CodeforcesClient.from_settings())


def track_user(handle: str, client: CodeforcesClient | None = None) -> IngestResult:
    """Per-user boundary used by the sweep, the tasks and the commands; failures become results."""
    if client is None:
        client = CodeforcesClient.from_settings()
    try:
        return ingest_user(handle, client)
    except TrackerError as exc:
        logger.warning("%s: tracking failed: %s", handle, exc)
        return IngestResult(handle, error=str(exc))
    except Exception as exc:
        logger.exception("%s: unexpected tracking failure", handle)
        return IngestResult(handle, error=str(exc))
