"""Popularity analyzer.

Turns weekly download counts, supplied by the registry client, into the
popularity dimension score on a logarithmic scale.
"""

import math
from typing import Optional

from package_health.models import PopularityAnalysis

VERY_POPULAR = 1_000_000
POPULAR = 100_000
MODERATE = 10_000
NICHE = 1_000
UNPOPULAR = 100

# Score used when no download data is available
NEUTRAL_POPULARITY_SCORE = 0.5


def calculate_popularity_score(
    weekly_downloads: int, age_days: Optional[int] = None
) -> float:
    """Score weekly downloads on a log10 scale, 1M/week being 1.0.

    Packages younger than a year get up to a 0.2 boost that shrinks as they
    age, since they had less time to gather users.
    """
    if weekly_downloads <= 0:
        return 0.0

    score = math.log10(weekly_downloads) / math.log10(VERY_POPULAR)
    if age_days is not None and age_days < 365:
        score += (1 - age_days / 365) * 0.2
    return max(0.0, min(1.0, score))


def _tier(weekly_downloads: int) -> str:
    if weekly_downloads >= VERY_POPULAR:
        return "very-popular"
    if weekly_downloads >= POPULAR:
        return "popular"
    if weekly_downloads >= MODERATE:
        return "moderate"
    if weekly_downloads >= NICHE:
        return "niche"
    return "unpopular"


def analyze_popularity(
    package: str,
    version: str,
    weekly_downloads: int,
    age_days: Optional[int] = None,
) -> PopularityAnalysis:
    if weekly_downloads < UNPOPULAR:
        severity = "warning"
    elif weekly_downloads < NICHE:
        severity = "info"
    else:
        severity = "ok"

    return PopularityAnalysis(
        package=package,
        version=version,
        weekly_downloads=weekly_downloads,
        score=calculate_popularity_score(weekly_downloads, age_days),
        tier=_tier(weekly_downloads),  # type: ignore[arg-type]
        severity=severity,  # type: ignore[arg-type]
        age_adjusted=age_days is not None and age_days < 365,
    )
