from datetime import datetime, timezone as dt_timezone

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from tracker.models import SystemMetadata

LAST_TRACKER_RUN = "last_tracker_run"
LAST_DAILY_RUN = "last_daily_run"
LAST_CONTEST_SYNC = "last_contest_sync"
LAST_RATING_SYNC = "last_rating_sync"


def get_value(key: str, default: str | None = None) -> str | None:
    row = SystemMetadata.objects.filter(key=key).only("value").first()
    return row.value if row else default


def set_value(key: str, value: str) -> None:
    SystemMetadata.objects.update_or_create(key=key, defaults={"value": value})


def mark_run(key: str, at: datetime | None = None) -> datetime:
    at = at or timezone.now()
    set_value(key, at.astimezone(dt_timezone.utc).isoformat())
    return at


def get_run(key: str) -> datetime | None:
    value = get_value(key)
    return parse_datetime(value) if value else None
