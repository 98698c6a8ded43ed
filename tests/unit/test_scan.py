"""Unit tests for scan orchestration."""

import pytest

from package_health.cache import PackageCache
from package_health.config import Config, project_type_defaults
from package_health.manifest import Manifest
from package_health.models import VulnerabilityAnalysis
from package_health.scan import HealthScanner, calculate_summary, tree_cache_key


@pytest.fixture
def registry(registry_factory, metadata_factory):
    """Registry with a healthy, a deprecated GPL and a warning package."""
    return registry_factory(
        metadata_factory("healthy", dependencies={"leaf": "1.0.0"}),
        metadata_factory("leaf", license="ISC"),
        metadata_factory(
            "legacy",
            license="GPL-3.0",
            deprecated=True,
            deprecation_message="use healthy instead",
        ),
        metadata_factory("weak", license="LGPL-2.1"),
    )


@pytest.fixture
def manifest():
    return Manifest(
        name="my-app",
        version="1.0.0",
        dependencies={"healthy": "^1.0.0", "legacy": "1.0.0", "missing": "^2.0.0"},
    )


class TestScan:
    """Test a full scan over a fake registry."""

    @pytest.mark.asyncio
    async def test_scan(self, registry, manifest, now):
        config = project_type_defaults("commercial")
        scanner = HealthScanner(config, registry, now=now)

        result = await scanner.scan(manifest)

        assert result.project_name == "my-app"
        assert result.project_type == "commercial"
        assert [p.package for p in result.packages] == ["healthy", "leaf", "legacy"]
        assert result.skipped == {"fetch-failed": 1}

        healthy = result.packages[0]
        assert healthy.score.rating == "excellent"
        assert healthy.depth == 1
        assert result.packages[1].depth == 2

        legacy = result.packages[2]
        assert legacy.license.severity == "critical"
        assert legacy.overall_severity == "critical"

        assert result.summary.total == 3
        assert result.summary.critical_issues == 1
        assert result.summary.risk_level == "critical"
        assert result.exit_code == 2
        assert result.below_minimum == ["legacy"]
        assert result.tree_summary is not None
        assert result.tree_summary.total_nodes == 4

    @pytest.mark.asyncio
    async def test_recommendations(self, registry, manifest, now):
        scanner = HealthScanner(project_type_defaults("commercial"), registry, now=now)
        result = await scanner.scan(manifest)

        assert len(result.recommendations) == 1
        rec = result.recommendations[0]
        assert rec.package == "legacy"
        assert rec.priority == "high"
        assert rec.reason == "Package is deprecated: use healthy instead"

    @pytest.mark.asyncio
    async def test_tree_is_cached_between_scans(self, registry, manifest, now):
        cache = PackageCache()
        scanner = HealthScanner(Config(), registry, cache=cache, now=now)

        first = await scanner.scan(manifest)
        calls_after_first = list(registry.calls)
        second = await scanner.scan(manifest)

        assert cache.get_tree(tree_cache_key("my-app", "1.0.0")) is first.tree
        assert second.tree is first.tree
        # Tree and metadata both come from the cache
        assert registry.calls == calls_after_first
        assert [p.package for p in second.packages] == [p.package for p in first.packages]

    @pytest.mark.asyncio
    async def test_tree_disabled_scans_direct_dependencies(self, registry, manifest, now):
        config = Config()
        config.dependency_tree.enabled = False
        scanner = HealthScanner(config, registry, now=now)

        result = await scanner.scan(manifest)

        assert result.tree is None
        assert [p.package for p in result.packages] == ["healthy", "legacy"]
        assert result.skipped == {"analysis-failed": 1}

    @pytest.mark.asyncio
    async def test_empty_manifest(self, registry, now):
        scanner = HealthScanner(Config(), registry, now=now)
        result = await scanner.scan(Manifest(name="empty", version="0.1.0"))

        assert result.packages == []
        assert result.summary.total == 0
        assert result.exit_code == 0


class TestExitCodes:
    """Test failOn thresholds."""

    @pytest.mark.parametrize(
        "fail_on,expected",
        [("none", 0), ("critical", 0), ("warning", 1), ("info", 1)],
    )
    @pytest.mark.asyncio
    async def test_warning_package(self, registry, now, fail_on, expected):
        config = Config(fail_on=fail_on)
        scanner = HealthScanner(config, registry, now=now)

        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"weak": "1.0.0"})
        )

        assert result.packages[0].overall_severity == "warning"
        assert result.exit_code == expected

    @pytest.mark.parametrize("fail_on,expected", [("none", 0), ("critical", 2), ("info", 2)])
    @pytest.mark.asyncio
    async def test_critical_package(self, registry, now, fail_on, expected):
        config = Config(fail_on=fail_on)
        scanner = HealthScanner(config, registry, now=now)

        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"legacy": "1.0.0"})
        )

        assert result.exit_code == expected


class TestLookups:
    """Test optional vulnerability and popularity hooks."""

    @pytest.mark.asyncio
    async def test_vulnerability_lookup(self, registry, now):
        async def lookup(name, version):
            return VulnerabilityAnalysis(name, version, critical_count=1)

        scanner = HealthScanner(Config(), registry, vulnerability_lookup=lookup, now=now)
        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"leaf": "1.0.0"})
        )

        leaf = result.packages[0]
        assert leaf.vulnerability is not None
        assert leaf.overall_severity == "critical"
        assert result.recommendations[0].reason == "1 critical vulnerabilities"

    @pytest.mark.asyncio
    async def test_failing_vulnerability_lookup_is_ignored(self, registry, now):
        async def lookup(name, version):
            raise ConnectionError("rate limited")

        scanner = HealthScanner(Config(), registry, vulnerability_lookup=lookup, now=now)
        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"leaf": "1.0.0"})
        )

        assert result.packages[0].vulnerability is None
        assert result.packages[0].overall_severity == "ok"

    @pytest.mark.asyncio
    async def test_popularity_lookup(self, registry, now):
        async def downloads(name):
            return 1_000_000

        scanner = HealthScanner(Config(), registry, popularity_lookup=downloads, now=now)
        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"leaf": "1.0.0"})
        )

        leaf = result.packages[0]
        assert leaf.popularity is not None
        assert leaf.popularity.tier == "very-popular"
        assert leaf.score.dimensions.popularity == 1.0

    @pytest.mark.asyncio
    async def test_failing_popularity_lookup_is_ignored(self, registry, now):
        async def downloads(name):
            raise TimeoutError("downloads endpoint timed out")

        scanner = HealthScanner(Config(), registry, popularity_lookup=downloads, now=now)
        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"leaf": "1.0.0"})
        )

        assert [p.package for p in result.packages] == ["leaf"]
        assert result.packages[0].popularity is None
        assert result.packages[0].score.dimensions.popularity == 0.5
        assert result.skipped == {}


class TestIgnore:
    """Test the ignore configuration."""

    @pytest.fixture
    def ignore_registry(self, registry_factory, metadata_factory):
        return registry_factory(
            metadata_factory("legacy", license="GPL-3.0", deprecated=True),
            metadata_factory("eslint-plugin-foo"),
            metadata_factory("vendored", license="GPL-3.0", author="Jane Doe <jane@corp.example>"),
            metadata_factory("leaf", license="ISC"),
        )

    @pytest.mark.asyncio
    async def test_ignored_packages(self, ignore_registry, now):
        config = Config()
        config.ignore.packages = ["legacy"]
        config.ignore.scopes = ["@internal/*"]
        config.ignore.prefixes = ["eslint-plugin-*"]
        config.ignore.authors = ["jane doe"]
        config.ignore.reasons = {"legacy": "Replaced next quarter"}
        scanner = HealthScanner(config, ignore_registry, now=now)

        result = await scanner.scan(
            Manifest(
                name="app",
                version="1.0.0",
                dependencies={
                    "legacy": "1.0.0",
                    "@internal/ui": "^1.0.0",
                    "eslint-plugin-foo": "1.0.0",
                    "vendored": "1.0.0",
                    "leaf": "1.0.0",
                },
            )
        )

        assert [p.package for p in result.packages] == ["leaf"]
        assert {i.package: i.reason for i in result.ignored} == {
            "legacy": "Replaced next quarter",
            "@internal/ui": "Matches scope: @internal/*",
            "eslint-plugin-foo": "Matches prefix: eslint-plugin-*",
            "vendored": "Author is in ignore list",
        }
        assert result.summary.total == 1
        assert result.exit_code == 0
        assert result.skipped == {}
        assert result.recommendations == []
        assert sorted(ignore_registry.calls) == ["leaf", "vendored"]

    @pytest.mark.asyncio
    async def test_name_rules_skip_fetching(self, ignore_registry, now):
        config = Config()
        config.dependency_tree.enabled = False
        config.ignore.scopes = ["@internal/*"]
        scanner = HealthScanner(config, ignore_registry, now=now)

        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"@internal/ui": "1.0.0"})
        )

        assert [i.package for i in result.ignored] == ["@internal/ui"]
        assert result.skipped == {}
        assert ignore_registry.calls == []


class TestAnalysisInputs:
    """Test what per-package analysis reads."""

    @pytest.mark.asyncio
    async def test_no_cache_reuses_tree_metadata(self, registry, manifest, now):
        config = Config()
        config.cache.enabled = False
        scanner = HealthScanner(config, registry, now=now)

        result = await scanner.scan(manifest)

        assert len(result.packages) == 3
        assert sorted(registry.calls) == ["healthy", "leaf", "legacy", "missing"]

    @pytest.mark.asyncio
    async def test_license_reports_resolved_version(self, registry_factory, metadata_factory, now):
        registry = registry_factory(
            metadata_factory("pinned", version="2.0.0", versions={"1.0.0": {}, "2.0.0": {}})
        )
        scanner = HealthScanner(Config(), registry, now=now)

        result = await scanner.scan(
            Manifest(name="app", version="1.0.0", dependencies={"pinned": "1.0.0"})
        )

        analysis = result.packages[0]
        assert analysis.version == "1.0.0"
        assert analysis.license.version == "1.0.0"


class TestSummary:
    """Test summary aggregation."""

    def test_empty_summary_is_critical_risk(self):
        """Test an empty scan averages 0, which reads as critical risk."""
        summary = calculate_summary([])

        assert summary.total == 0
        assert summary.average_score == 0
        assert summary.risk_level == "critical"
