from collections import Counter
from datetime import datetime, tzinfo

from django.db.models import Q, QuerySet
from django.utils import timezone

from tracker.models import Submission, TrackedUser
from tracker.services.scoring import BANDS, compute_score, problem_points, rating_band
from tracker.services.streaks import get_streak_timezone

OTHER_BAND = "other"
SORT_FIELDS = ("submission_time", "rating")


def rating_distribution(user: TrackedUser) -> list[dict]:
    """Solved problems per rating band, in band order, leaving out empty bands."""
    ratings = list(user.submissions.values_list("rating", flat=True))
    counts = compute_score(ratings).counts
    counts[OTHER_BAND] = sum(1 for rating in ratings if rating_band(rating) is None)
    return [
        {"band": band, "count": counts[band]}
        for band in (*BANDS, OTHER_BAND)
        if counts[band]
    ]


def daily_progress(user: TrackedUser, tz: tzinfo | None = None) -> list[dict]:
    tz = tz or get_streak_timezone()
    points: dict[str, int] = {}
    for rating, submitted in user.submissions.values_list("rating", "submission_time"):
        day = timezone.localtime(submitted, tz).date().isoformat()
        points[day] = points.get(day, 0) + problem_points(rating)
    return [{"date": day, "points": points[day]} for day in sorted(points)]


def top_tags(user: TrackedUser, limit: int = 10) -> list[dict]:
    counter = Counter()
    for tags in user.submissions.values_list("tags", flat=True):
        counter.update(tags or [])
    return [{"tag": tag, "count": count} for tag, count in counter.most_common(limit)]


def detailed_stats(user: TrackedUser, tz: tzinfo | None = None) -> dict:
    return {
        "rating_distribution": rating_distribution(user),
        "daily_progress": daily_progress(user, tz),
        "top_tags": top_tags(user),
    }


def filter_submissions(
    user: TrackedUser,
    rating_min: int | None = None,
    rating_max: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    no_rating: bool = False,
    sort: str = "submission_time",
    order: str = "desc",
) -> QuerySet:
    """
    Stored submissions of ``user`` narrowed by rating and date.

    Unrated problems pass both rating bounds; ``no_rating`` keeps only them.
    Sorting by rating breaks ties with the newest submission first.
    """
    queryset = Submission.objects.filter(user=user)
    if rating_min is not None:
        queryset = queryset.filter(Q(rating__gte=rating_min) | Q(rating__isnull=True))
    if rating_max is not None:
        queryset = queryset.filter(Q(rating__lte=rating_max) | Q(rating__isnull=True))
    if date_from is not None:
        queryset = queryset.filter(submission_time__gte=date_from)
    if date_to is not None:
        queryset = queryset.filter(submission_time__lte=date_to)
    if no_rating:
        queryset = queryset.filter(rating__isnull=True)

    if sort not in SORT_FIELDS:
        sort = "submission_time"
    prefix = "" if order == "asc" else "-"
    if sort == "rating":
        return queryset.order_by(f"{prefix}rating", "-submission_time")
    return queryset.order_by(f"{prefix}submission_time")
