"""Unit tests for the popularity and vulnerability analyzers."""

import pytest

from package_health.analyzers.popularity import analyze_popularity, calculate_popularity_score
from package_health.analyzers.vulnerability import (
    calculate_vulnerability_score,
    summarize_advisories,
    vulnerability_severity,
)
from package_health.models import Advisory, VulnerabilityAnalysis


class TestPopularity:
    """Test popularity scoring."""

    def test_no_downloads(self):
        assert calculate_popularity_score(0) == 0.0

    def test_log_scale(self):
        assert calculate_popularity_score(1_000_000) == pytest.approx(1.0)
        assert calculate_popularity_score(1_000) == pytest.approx(0.5)

    def test_capped(self):
        assert calculate_popularity_score(50_000_000) == 1.0

    def test_young_package_boost(self):
        boosted = calculate_popularity_score(1_000, age_days=0)
        assert boosted == pytest.approx(0.7)
        assert calculate_popularity_score(1_000, age_days=400) == pytest.approx(0.5)

    @pytest.mark.parametrize(
        "downloads,tier,severity",
        [
            (5_000_000, "very-popular", "ok"),
            (200_000, "popular", "ok"),
            (20_000, "moderate", "ok"),
            (2_000, "niche", "ok"),
            (500, "unpopular", "info"),
            (10, "unpopular", "warning"),
        ],
    )
    def test_tiers(self, downloads, tier, severity):
        result = analyze_popularity("pkg", "1.0.0", downloads)
        assert result.tier == tier
        assert result.severity == severity
        assert result.age_adjusted is False


class TestVulnerabilities:
    """Test vulnerability scoring."""

    def test_summarize(self):
        result = summarize_advisories(
            "pkg",
            "1.0.0",
            [
                Advisory(id="GHSA-1", severity="critical"),
                Advisory(id="GHSA-2", severity="low"),
                Advisory(id="GHSA-3", severity="low"),
            ],
        )
        assert result.critical_count == 1
        assert result.low_count == 2
        assert result.total_count == 3
        assert len(result.advisories) == 3

    def test_score_without_vulnerabilities(self):
        assert calculate_vulnerability_score(None) == 1.0
        assert calculate_vulnerability_score(VulnerabilityAnalysis("pkg", "1.0.0")) == 1.0

    def test_score_penalties(self):
        vuln = VulnerabilityAnalysis("pkg", "1.0.0", high_count=1, moderate_count=2)
        assert calculate_vulnerability_score(vuln) == pytest.approx(0.4)

    def test_score_floor(self):
        vuln = VulnerabilityAnalysis("pkg", "1.0.0", critical_count=3)
        assert calculate_vulnerability_score(vuln) == 0.0

    @pytest.mark.parametrize(
        "counts,severity",
        [
            ({}, "ok"),
            ({"low_count": 1}, "info"),
            ({"moderate_count": 1}, "info"),
            ({"high_count": 1}, "warning"),
            ({"critical_count": 1, "low_count": 4}, "critical"),
        ],
    )
    def test_severity(self, counts, severity):
        assert vulnerability_severity(VulnerabilityAnalysis("pkg", "1.0.0", **counts)) == severity
