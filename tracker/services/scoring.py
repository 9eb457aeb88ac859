from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from django.db import DatabaseError

from tracker.exceptions import PersistenceError
from tracker.models import Submission, UserStats

BAND_NO_RATING = "no_rating"
BAND_800_900 = "800_900"
BAND_1000 = "1000"
BAND_1100 = "1100"
BAND_1200_PLUS = "1200_plus"

BANDS = (BAND_NO_RATING, BAND_800_900, BAND_1000, BAND_1100, BAND_1200_PLUS)

BAND_WEIGHTS = {
    BAND_NO_RATING: 1,
    BAND_800_900: 1,
    BAND_1000: 2,
    BAND_1100: 3,
    BAND_1200_PLUS: 5,
}


def rating_band(rating: int | None) -> str | None:
    if not rating:
        return BAND_NO_RATING
    if 800 <= rating <= 900:
        return BAND_800_900
    if rating == 1000:
        return BAND_1000
    if rating == 1100:
        return BAND_1100
    if rating >= 1200:
        return BAND_1200_PLUS
    # Codeforces ratings are multiples of 100 from 800 upwards; anything else scores nothing.
    return None


def problem_points(rating: int | None) -> int:
    band = rating_band(rating)
    return BAND_WEIGHTS[band] if band else 0


@dataclass
class ScoreBreakdown:
    counts: dict[str, int] = field(default_factory=lambda: {band: 0 for band in BANDS})
    total_score: int = 0

    def as_dict(self) -> dict:
        return {"band_counts": dict(self.counts), "total_score": self.total_score}


def compute_score(ratings: Iterable[int | None]) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()
    for rating in ratings:
        band = rating_band(rating)
        if band is None:
            continue
        breakdown.counts[band] += 1
        breakdown.total_score += BAND_WEIGHTS[band]
    return breakdown


def recompute_score(user_id: int) -> ScoreBreakdown:
    """Rebuild the cached stats row from every stored submission of the user."""
    ratings = Submission.objects.filter(user_id=user_id).values_list("rating", flat=True)
    breakdown = compute_score(ratings)
    try:
        UserStats.objects.update_or_create(
            user_id=user_id,
            defaults={
                "total_score": breakdown.total_score,
                "count_no_rating": breakdown.counts[BAND_NO_RATING],
                "count_800_900": breakdown.counts[BAND_800_900],
                "count_1000": breakdown.counts[BAND_1000],
                "count_1100": breakdown.counts[BAND_1100],
                "count_1200_plus": breakdown.counts[BAND_1200_PLUS],
            },
        )
    except DatabaseError as exc:
        raise PersistenceError(f"Could not store stats for user {user_id}: {exc}") from exc
    return breakdown
