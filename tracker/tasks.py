import logging

from celery import shared_task
from django.utils import timezone

from .services.codeforces import CodeforcesClient
from .services.contests import sync_contests
from .services.ingestion import track_user
from .services.rating_history import refresh_all_rating_histories
from .services.sweep import in_quiet_hours, ingest_all_users, run_daily_maintenance

logger = logging.getLogger(__name__)


@shared_task
def track_all_users(force: bool = False) -> dict:
    if not force and in_quiet_hours(timezone.now()):
        logger.info("Tracking skipped: quiet hours")
        return {"status": "skipped", "reason": "quiet_hours"}

    summary = ingest_all_users()
    return {"status": "ok", **summary.as_dict()}


@shared_task
def track_single_user(handle: str) -> dict:
    return track_user(handle).as_dict()


@shared_task
def daily_maintenance() -> dict:
    return run_daily_maintenance()


@shared_task
def sync_codeforces_contests() -> dict:
    return sync_contests(CodeforcesClient.from_settings())


@shared_task
def sync_rating_histories() -> dict:
    return refresh_all_rating_histories()
