"""Age analyzer.

Determines how long ago a package was last published and whether it is
still maintained, and converts the age into the age dimension score.
"""

import re
from datetime import UTC, datetime
from typing import Optional

from package_health.config import AgeConfig
from package_health.models import AgeAnalysis, PackageMetadata, Severity

DAYS_PER_YEAR = 365
DAYS_PER_MONTH = 30

# (upper bound in days, score); ages at or beyond the last bound score 0.2
AGE_SCORE_BREAKPOINTS = [
    (6 * DAYS_PER_MONTH, 1.0),
    (DAYS_PER_YEAR, 0.9),
    (2 * DAYS_PER_YEAR, 0.8),
    (3 * DAYS_PER_YEAR, 0.6),
    (5 * DAYS_PER_YEAR, 0.4),
]
OLDEST_AGE_SCORE = 0.2

_THRESHOLD_PATTERN = re.compile(r"^(\d+)([ymd])$", re.IGNORECASE)


def parse_time_threshold(threshold: str) -> int:
    """Parse a threshold such as "2y", "6m" or "90d" into days.

    Raises:
        ValueError: If the threshold is malformed.
    """
    match = _THRESHOLD_PATTERN.match(threshold.strip())
    if not match:
        raise ValueError(
            f'Invalid time threshold format: {threshold}. Use format like "2y", "6m", or "90d"'
        )
    value, unit = int(match.group(1)), match.group(2).lower()
    if unit == "y":
        return value * DAYS_PER_YEAR
    if unit == "m":
        return value * DAYS_PER_MONTH
    return value


def days_to_human(days: int) -> str:
    """Render a day count as a short human-readable duration."""
    if days < 1:
        return "today"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 30:
        weeks = days // 7
        return "1 week" if weeks == 1 else f"{weeks} weeks"
    if days < DAYS_PER_YEAR:
        months = days // DAYS_PER_MONTH
        return "1 month" if months == 1 else f"{months} months"

    years = days // DAYS_PER_YEAR
    months = (days % DAYS_PER_YEAR) // DAYS_PER_MONTH
    year_str = "1 year" if years == 1 else f"{years} years"
    if months == 0:
        return year_str
    month_str = "1 month" if months == 1 else f"{months} months"
    return f"{year_str} {month_str}"


def last_publish_date(metadata: PackageMetadata) -> Optional[datetime]:
    """Pick the most relevant publish timestamp from the registry times."""
    for key in ("modified", metadata.version, "created"):
        if key in metadata.time:
            return metadata.time[key]
    return None


def _determine_severity(age_days: int, config: AgeConfig, deprecated: bool) -> Severity:
    if deprecated:
        return "critical"
    if age_days >= parse_time_threshold(config.critical):
        return "critical"
    if age_days >= parse_time_threshold(config.warn):
        return "warning"
    return "ok"


def analyze_age(
    metadata: PackageMetadata,
    config: Optional[AgeConfig] = None,
    now: Optional[datetime] = None,
) -> AgeAnalysis:
    """Analyze package age and maintenance status.

    Args:
        metadata: Registry metadata of the package.
        config: Age thresholds; defaults to AgeConfig().
        now: Reference time, defaults to the current UTC time.

    Returns:
        AgeAnalysis for the package. Packages without any publish timestamp
        get an age of 0 days and a warning severity.
    """
    config = config or AgeConfig()
    published = last_publish_date(metadata)
    has_repository = bool(metadata.repository_url)

    if published is None:
        return AgeAnalysis(
            package=metadata.name,
            version=metadata.version,
            last_publish=None,
            age_days=0,
            age_human="unknown",
            deprecated=metadata.deprecated,
            deprecation_message=metadata.deprecation_message,
            severity="critical" if metadata.deprecated else "warning",
            has_repository=has_repository,
            repository_url=metadata.repository_url,
        )

    now = now or datetime.now(UTC)
    if published.tzinfo is None:
        published = published.replace(tzinfo=UTC)
    age_days = max(0, (now - published).days)

    return AgeAnalysis(
        package=metadata.name,
        version=metadata.version,
        last_publish=published,
        age_days=age_days,
        age_human=days_to_human(age_days),
        deprecated=metadata.deprecated,
        deprecation_message=metadata.deprecation_message,
        severity=_determine_severity(age_days, config, metadata.deprecated),
        has_repository=has_repository,
        repository_url=metadata.repository_url,
    )


def calculate_age_score(age_days: int) -> float:
    """Map elapsed days since last publish to a 0-1 score.

    Under 6 months scores 1.0, under 1 year 0.9, under 2 years 0.8,
    under 3 years 0.6, under 5 years 0.4, anything older 0.2.
    """
    for limit, score in AGE_SCORE_BREAKPOINTS:
        if age_days < limit:
            return score
    return OLDEST_AGE_SCORE
