"""Health scorer.

Combines the per-dimension analyses of a package into one weighted 0-100
health score with a rating.
"""

from dataclasses import fields
from typing import Optional

from package_health.analyzers.age import calculate_age_score
from package_health.analyzers.license import calculate_license_score
from package_health.analyzers.popularity import NEUTRAL_POPULARITY_SCORE
from package_health.analyzers.vulnerability import (
    calculate_vulnerability_score,
    vulnerability_severity,
)
from package_health.config import ScoringConfig
from package_health.models import (
    AgeAnalysis,
    DimensionScores,
    HealthRating,
    HealthScore,
    LicenseAnalysis,
    PopularityAnalysis,
    Severity,
    VulnerabilityAnalysis,
    worst_severity,
)

REPOSITORY_PRESENT_SCORE = 0.8
REPOSITORY_MISSING_SCORE = 0.3

PERFECT_SCORE = HealthScore(
    overall=100,
    rating="excellent",
    dimensions=DimensionScores(
        age=1.0,
        deprecation=1.0,
        license=1.0,
        vulnerability=1.0,
        popularity=1.0,
        repository=1.0,
        update_frequency=1.0,
    ),
)


def determine_rating(score: int) -> HealthRating:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"


def calculate_health_score(
    age: AgeAnalysis,
    license: LicenseAnalysis,
    config: ScoringConfig,
    project_type: str,
    vulnerability: Optional[VulnerabilityAnalysis] = None,
    popularity: Optional[PopularityAnalysis] = None,
) -> HealthScore:
    """Calculate the overall health score of a package.

    Args:
        age: Age analysis of the package.
        license: License analysis of the package.
        config: Scoring configuration (enabled flag and boosters).
        project_type: Project type the license score is computed for.
        vulnerability: Known vulnerabilities, if they were looked up.
        popularity: Popularity analysis, if download data was available.

    Returns:
        HealthScore with the overall score, rating and dimension scores.
        When scoring is disabled a fixed perfect score is returned.
    """
    if not config.enabled:
        return PERFECT_SCORE

    age_score = calculate_age_score(age.age_days)
    dimensions = DimensionScores(
        age=age_score,
        deprecation=0.0 if age.deprecated else 1.0,
        license=calculate_license_score(
            license.category,
            license.blue_oak_rating,
            project_type,
            license.has_patent_clause,
        ),
        vulnerability=calculate_vulnerability_score(vulnerability),
        popularity=popularity.score if popularity else NEUTRAL_POPULARITY_SCORE,
        repository=REPOSITORY_PRESENT_SCORE if age.has_repository else REPOSITORY_MISSING_SCORE,
        # Release cadence is not tracked yet; mirrors the age signal
        update_frequency=age_score,
    )

    boosters = config.boosters
    names = [f.name for f in fields(DimensionScores)]
    weighted_sum = sum(getattr(dimensions, n) * getattr(boosters, n) for n in names)
    total_weight = sum(getattr(boosters, n) for n in names)

    overall = round(100 * weighted_sum / total_weight) if total_weight > 0 else 0
    overall = max(0, min(100, overall))

    return HealthScore(
        overall=overall,
        rating=determine_rating(overall),
        dimensions=dimensions,
    )


def get_overall_severity(
    age: AgeAnalysis,
    license: LicenseAnalysis,
    vulnerability: Optional[VulnerabilityAnalysis] = None,
) -> Severity:
    """Return the worst severity across the analyses of one package."""
    return worst_severity(
        age.severity,
        license.severity,
        vulnerability_severity(vulnerability) if vulnerability else None,
    )
