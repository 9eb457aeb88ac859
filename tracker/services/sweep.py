import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from django.conf import settings
from django.utils import timezone

from tracker.exceptions import HandleNotFound, TrackerError
from tracker.models import TrackedUser
from tracker.services import metadata
from tracker.services.codeforces import CodeforcesClient, absolute_avatar_url
from tracker.services.ingestion import IngestResult, track_user
from tracker.services.streaks import get_streak_timezone, reset_expired_streaks

logger = logging.getLogger(__name__)


@dataclass
class SweepSummary:
    results: list[IngestResult] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def total_new(self) -> int:
        return sum(result.new_submissions for result in self.results)

    @property
    def errors(self) -> int:
        return sum(1 for result in self.results if result.error)

    @property
    def disabled(self) -> list[str]:
        return [result.handle for result in self.results if result.disabled]

    def as_dict(self) -> dict:
        return {
            "users": len(self.results),
            "new_submissions": self.total_new,
            "errors": self.errors,
            "disabled": self.disabled,
            "results": [result.as_dict() for result in self.results],
        }


def parse_quiet_hours(value: str | None) -> tuple[int, int] | None:
    """``"3-8"`` means 03:00 up to (not including) 08:00."""
    if not value:
        return None
    try:
        start, end = (int(part) for part in value.split("-", 1))
    except ValueError:
        logger.warning("Ignoring malformed TRACKER_QUIET_HOURS=%r", value)
        return None
    return start, end


def in_quiet_hours(now: datetime | None = None) -> bool:
    window = parse_quiet_hours(getattr(settings, "TRACKER_QUIET_HOURS", ""))
    if window is None:
        return False
    hour = timezone.localtime(now or timezone.now(), get_streak_timezone()).hour
    start, end = window
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def ingest_all_users(client=None, pause: float | None = None, sleep=time.sleep) -> SweepSummary:
    """
    Track every enabled user, one at a time, pausing between users.

    A failing user only marks its own result; the sweep always finishes
    and records ``last_tracker_run``.
    """
    if client is None:
        client = CodeforcesClient.from_settings()
    if pause is None:
        pause = float(getattr(settings, "TRACKER_USER_PAUSE_SECONDS", 0.5))

    summary = SweepSummary(started_at=timezone.now())
    handles = list(TrackedUser.objects.filter(enabled=True).order_by("handle").values_list("handle", flat=True))
    if not handles:
        logger.info("No users to track")

    for handle in handles:
        summary.results.append(track_user(handle, client))
        if pause > 0:
            sleep(pause)

    summary.finished_at = timezone.now()
    metadata.mark_run(metadata.LAST_TRACKER_RUN, summary.finished_at)
    logger.info(
        "Tracking sweep finished users=%s new=%s errors=%s disabled=%s duration_ms=%s",
        len(summary.results),
        summary.total_new,
        summary.errors,
        len(summary.disabled),
        int((summary.finished_at - summary.started_at).total_seconds() * 1000),
    )
    return summary


def refresh_avatars(client, pause: float | None = None, sleep=time.sleep) -> int:
    if pause is None:
        pause = float(getattr(settings, "TRACKER_AVATAR_PAUSE_SECONDS", 0.1))

    updated = 0
    for user in TrackedUser.objects.filter(enabled=True).order_by("handle"):
        try:
            info = client.get_user_info(user.handle)
        except HandleNotFound:
            logger.warning("%s: not found while refreshing avatar; the next sweep disables it", user.handle)
        except TrackerError as exc:
            logger.warning("%s: could not refresh avatar (%s)", user.handle, exc)
        else:
            avatar = absolute_avatar_url(info.get("avatar") or info.get("titlePhoto"))
            if avatar and avatar != user.avatar_url:
                user.avatar_url = avatar
                user.save(update_fields=["avatar_url"])
                updated += 1
        if pause > 0:
            sleep(pause)
    return updated


def run_daily_maintenance(client=None, sleep=time.sleep) -> dict:
    if client is None:
        client = CodeforcesClient.from_settings()
    reset = reset_expired_streaks()
    avatars = refresh_avatars(client, sleep=sleep)
    metadata.mark_run(metadata.LAST_DAILY_RUN)
    logger.info("Daily maintenance finished streaks_reset=%s avatars_updated=%s", reset, avatars)
    return {"streaks_reset": reset, "avatars_updated": avatars}
