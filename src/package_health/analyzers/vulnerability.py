"""Vulnerability scoring.

Vulnerability records are produced by the advisory client; this module only
turns their per-tier counts into a score and a severity.
"""

from typing import Optional

from package_health.models import Advisory, Severity, VulnerabilityAnalysis

# Score penalty per known vulnerability, by tier
TIER_PENALTIES = {
    "critical": 0.5,
    "high": 0.3,
    "moderate": 0.15,
    "low": 0.05,
}


def summarize_advisories(
    package: str, version: str, advisories: list[Advisory]
) -> VulnerabilityAnalysis:
    """Count advisories per severity tier."""
    counts = {tier: 0 for tier in TIER_PENALTIES}
    for advisory in advisories:
        counts[advisory.severity] += 1
    return VulnerabilityAnalysis(
        package=package,
        version=version,
        critical_count=counts["critical"],
        high_count=counts["high"],
        moderate_count=counts["moderate"],
        low_count=counts["low"],
        advisories=tuple(advisories),
    )


def calculate_vulnerability_score(vulnerability: Optional[VulnerabilityAnalysis]) -> float:
    """Score known vulnerabilities: 1.0 when there are none, down to 0.0."""
    if vulnerability is None or vulnerability.total_count == 0:
        return 1.0
    penalty = (
        TIER_PENALTIES["critical"] * vulnerability.critical_count
        + TIER_PENALTIES["high"] * vulnerability.high_count
        + TIER_PENALTIES["moderate"] * vulnerability.moderate_count
        + TIER_PENALTIES["low"] * vulnerability.low_count
    )
    return max(0.0, 1.0 - penalty)


def vulnerability_severity(vulnerability: Optional[VulnerabilityAnalysis]) -> Severity:
    if vulnerability is None:
        return "ok"
    if vulnerability.critical_count > 0:
        return "critical"
    if vulnerability.high_count > 0:
        return "warning"
    if vulnerability.moderate_count > 0 or vulnerability.low_count > 0:
        return "info"
    return "ok"
