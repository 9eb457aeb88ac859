"""
Consecutive-day streaks.

A streak is always rebuilt from the full submission history: each UTC
instant is mapped to its calendar day in ``STREAK_TIME_ZONE`` and the run
of consecutive days ending today or yesterday is counted. Rebuilding
instead of incrementing lets a missed or repeated sweep heal itself.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from tracker.exceptions import PersistenceError
from tracker.models import Submission, TrackedUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakState:
    streak: int
    last_date: date | None

    def as_dict(self) -> dict:
        return {
            "streak": self.streak,
            "last_date": self.last_date.isoformat() if self.last_date else None,
        }


NO_STREAK = StreakState(0, None)


def get_streak_timezone() -> tzinfo:
    name = getattr(settings, "STREAK_TIME_ZONE", None) or settings.TIME_ZONE
    return ZoneInfo(name)


def local_today(tz: tzinfo | None = None) -> date:
    return timezone.localdate(timezone=tz or get_streak_timezone())


def compute_streak(
    instants: Iterable[datetime],
    tz: tzinfo,
    today: date | None = None,
) -> StreakState:
    if today is None:
        today = local_today(tz)

    days = sorted({timezone.localtime(instant, tz).date() for instant in instants}, reverse=True)
    if not days:
        return NO_STREAK

    latest = days[0]
    if (today - latest).days > 1:
        return NO_STREAK

    streak = 1
    expected = latest - timedelta(days=1)
    for day in days[1:]:
        if day != expected:
            break
        streak += 1
        expected = day - timedelta(days=1)

    return StreakState(streak, latest)


def recompute_streak(user_id: int, today: date | None = None) -> StreakState:
    tz = get_streak_timezone()
    instants = Submission.objects.filter(user_id=user_id).values_list("submission_time", flat=True)
    state = compute_streak(instants, tz, today=today)
    try:
        TrackedUser.objects.filter(id=user_id).update(
            current_streak=state.streak,
            last_streak_date=state.last_date,
        )
    except DatabaseError as exc:
        raise PersistenceError(f"Could not store streak for user {user_id}: {exc}") from exc
    return state


def reset_expired_streaks(today: date | None = None) -> int:
    """Recompute every stored streak that is no longer anchored at today or yesterday."""
    if today is None:
        today = local_today()
    yesterday = today - timedelta(days=1)

    stale = TrackedUser.objects.filter(current_streak__gt=0).filter(
        Q(last_streak_date__isnull=True) | Q(last_streak_date__lt=yesterday)
    )

    reset = 0
    for user in stale.only("id", "handle", "current_streak"):
        previous = user.current_streak
        state = recompute_streak(user.id, today=today)
        if state.streak == 0:
            reset += 1
            logger.info("%s: streak %s -> 0", user.handle, previous)
        else:
            logger.warning("%s: stored streak was stale, repaired to %s", user.handle, state.streak)

    return reset
