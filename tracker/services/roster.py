import logging

from django.db import transaction

from tracker.exceptions import RosterError
from tracker.models import TrackedUser
from tracker.services.codeforces import CodeforcesClient, absolute_avatar_url

logger = logging.getLogger(__name__)


def find_user(handle: str) -> TrackedUser | None:
    """Case-insensitive lookup; an exact match wins."""
    return (
        TrackedUser.objects.filter(handle=handle).first()
        or TrackedUser.objects.filter(handle__iexact=handle).order_by("id").first()
    )


def _get_user(handle: str) -> TrackedUser:
    user = find_user(handle)
    if user is None:
        raise RosterError(f"User '{handle}' is not tracked")
    return user


def _profile_fields(info: dict) -> dict:
    return {
        "rating": info.get("rating"),
        "rank": info.get("rank") or "",
        "avatar_url": absolute_avatar_url(info.get("avatar") or info.get("titlePhoto")),
    }


def add_user(handle: str, client: CodeforcesClient) -> TrackedUser:
    """Verify ``handle`` on Codeforces and start tracking it. HandleNotFound propagates."""
    handle = (handle or "").strip()
    if not handle:
        raise RosterError("A handle is required")
    if TrackedUser.objects.filter(handle__iexact=handle).exists():
        raise RosterError(f"User '{handle}' is already tracked")

    info = client.get_user_info(handle)
    # Store the platform's spelling of the handle.
    user = TrackedUser.objects.create(handle=info.get("handle") or handle, **_profile_fields(info))
    logger.info("Tracking %s (rating=%s)", user.handle, user.rating)
    return user


def rename_user(current: str, new: str, client: CodeforcesClient) -> TrackedUser:
    new = (new or "").strip()
    if not new:
        raise RosterError("A new handle is required")
    user = _get_user(current)
    if TrackedUser.objects.filter(handle__iexact=new).exclude(id=user.id).exists():
        raise RosterError(f"User '{new}' is already tracked")

    info = client.get_user_info(new)
    with transaction.atomic():
        user.handle = info.get("handle") or new
        for name, value in _profile_fields(info).items():
            setattr(user, name, value)
        user.save(update_fields=["handle", "rating", "rank", "avatar_url"])
    logger.info("Renamed %s -> %s", current, user.handle)
    return user


def set_enabled(handle: str, enabled: bool) -> TrackedUser:
    user = _get_user(handle)
    if user.enabled != enabled:
        user.enabled = enabled
        user.save(update_fields=["enabled"])
    return user


def set_hidden(handle: str, hidden: bool) -> TrackedUser:
    user = _get_user(handle)
    if user.hidden != hidden:
        user.hidden = hidden
        user.save(update_fields=["hidden"])
    return user


def remove_user(handle: str) -> int:
    """Delete the user together with its submissions and stats. Returns the number of submissions removed."""
    user = _get_user(handle)
    submissions = user.submissions.count()
    user.delete()
    logger.info("Removed %s (%s submissions)", handle, submissions)
    return submissions
