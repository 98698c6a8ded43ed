"""Per-package analyzers.

This package provides the analyses that feed the health score: age,
license, popularity and vulnerabilities, plus the scorer combining them.
"""

from package_health.analyzers.age import analyze_age, calculate_age_score
from package_health.analyzers.license import analyze_license, calculate_license_score
from package_health.analyzers.popularity import (
    analyze_popularity,
    calculate_popularity_score,
)
from package_health.analyzers.scorer import (
    calculate_health_score,
    determine_rating,
    get_overall_severity,
)
from package_health.analyzers.vulnerability import (
    calculate_vulnerability_score,
    summarize_advisories,
    vulnerability_severity,
)

__all__ = [
    "analyze_age",
    "analyze_license",
    "analyze_popularity",
    "calculate_age_score",
    "calculate_health_score",
    "calculate_license_score",
    "calculate_popularity_score",
    "calculate_vulnerability_score",
    "determine_rating",
    "get_overall_severity",
    "summarize_advisories",
    "vulnerability_severity",
]
