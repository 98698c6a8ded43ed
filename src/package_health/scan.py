"""Scan orchestration.

Builds the dependency tree of a manifest, analyzes every unique package in
it and aggregates the results into a ScanResult for the reporters.
"""

import asyncio
import logging
import time
from collections import Counter
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from package_health.analyzers import (
    analyze_age,
    analyze_license,
    analyze_popularity,
    calculate_health_score,
    get_overall_severity,
)
from package_health.cache import PackageCache
from package_health.config import Config
from package_health.ignore import ignore_reason
from package_health.manifest import Manifest
from package_health.models import (
    SEVERITY_ORDER,
    DependencyTreeNode,
    IgnoredPackage,
    PackageAnalysis,
    PopularityAnalysis,
    Recommendation,
    ScanResult,
    ScanSummary,
    SkipReason,
    VulnerabilityAnalysis,
)
from package_health.registry.base import MetadataFetcher
from package_health.tree import (
    DependencyTreeBuilder,
    collect_unique_packages,
    generate_tree_summary,
    resolve_version,
)

logger = logging.getLogger(__name__)

# Async hooks for collaborators the engine does not implement itself
VulnerabilityLookup = Callable[[str, str], Awaitable[Optional[VulnerabilityAnalysis]]]
PopularityLookup = Callable[[str], Awaitable[Optional[int]]]

ANALYSIS_FAILED = "analysis-failed"

EXIT_OK = 0
EXIT_WARNING = 1
EXIT_CRITICAL = 2


def tree_cache_key(name: str, version: str) -> str:
    return f"tree:{name}@{version}"


def calculate_summary(analyses: list[PackageAnalysis]) -> ScanSummary:
    """Aggregate ratings, severities and the overall risk level.

    Risk is critical with any critical issue or an average below 40, high
    with more than five warnings or an average below 60, medium with any
    warning or an average below 80, and low otherwise.
    """
    ratings = Counter(a.score.rating for a in analyses)
    severities = Counter(a.overall_severity for a in analyses)
    average = sum(a.score.overall for a in analyses) / len(analyses) if analyses else 0

    critical = severities["critical"]
    warning = severities["warning"]

    if critical > 0 or average < 40:
        risk_level = "critical"
    elif warning > 5 or average < 60:
        risk_level = "high"
    elif warning > 0 or average < 80:
        risk_level = "medium"
    else:
        risk_level = "low"

    return ScanSummary(
        total=len(analyses),
        excellent=ratings["excellent"],
        good=ratings["good"],
        fair=ratings["fair"],
        poor=ratings["poor"],
        average_score=round(average),
        risk_level=risk_level,
        critical_issues=critical,
        warning_issues=warning,
        info_issues=severities["info"],
    )


def _critical_reason(analysis: PackageAnalysis) -> str:
    license = analysis.license
    if license.severity == "critical" and license.category == "commercial-incompatible":
        return f"License {license.license} is incompatible with commercial use"
    if license.category == "unlicensed":
        return "Package has no license"
    if license.severity == "critical" and license.reason:
        return license.reason
    if analysis.vulnerability and analysis.vulnerability.critical_count:
        return f"{analysis.vulnerability.critical_count} critical vulnerabilities"
    return "Critical issue detected"


def generate_recommendations(analyses: list[PackageAnalysis]) -> list[Recommendation]:
    """Suggest which packages need attention, at most one entry per package."""
    recommendations = []
    for analysis in analyses:
        if analysis.age.deprecated:
            message = analysis.age.deprecation_message or "No longer maintained"
            recommendations.append(
                Recommendation(
                    package=analysis.package,
                    reason=f"Package is deprecated: {message}",
                    priority="high",
                )
            )
        elif analysis.overall_severity == "critical":
            recommendations.append(
                Recommendation(
                    package=analysis.package,
                    reason=_critical_reason(analysis),
                    priority="high",
                )
            )
        elif analysis.score.overall < 40:
            recommendations.append(
                Recommendation(
                    package=analysis.package,
                    reason=(
                        f"Low health score ({analysis.score.overall}/100). "
                        f"Package is {analysis.age.age_human} old."
                    ),
                    priority="medium",
                )
            )
    return recommendations


def determine_exit_code(analyses: list[PackageAnalysis], fail_on: str) -> int:
    """Map the worst severity found to a process exit code.

    Returns:
        2 if a critical issue is found, 1 if a warning (or info, with
        ``fail_on="info"``) reaches the threshold, else 0. ``fail_on="none"``
        always yields 0.
    """
    if fail_on == "none":
        return EXIT_OK

    threshold = SEVERITY_ORDER[fail_on]
    worst = max((SEVERITY_ORDER[a.overall_severity] for a in analyses), default=0)

    if worst == SEVERITY_ORDER["critical"]:
        return EXIT_CRITICAL
    if worst >= threshold:
        return EXIT_WARNING
    return EXIT_OK


class HealthScanner:
    """Scans a manifest and analyzes the health of its dependencies.

    Attributes:
        config: Scan configuration.
        cache: Cache shared by the tree builder and package analysis.
    """

    def __init__(
        self,
        config: Config,
        fetcher: MetadataFetcher,
        cache: Optional[PackageCache] = None,
        vulnerability_lookup: Optional[VulnerabilityLookup] = None,
        popularity_lookup: Optional[PopularityLookup] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            config: Scan configuration.
            fetcher: Async callable returning PackageMetadata for a name.
            cache: Cache to use; one is built from ``config.cache`` if omitted.
            vulnerability_lookup: Optional async hook returning known
                vulnerabilities for (name, version).
            popularity_lookup: Optional async hook returning weekly downloads.
            now: Reference time for age analysis, defaults to now.
        """
        self.config = config
        self.fetcher = fetcher
        self.cache = cache or PackageCache(enabled=config.cache.enabled, ttl=config.cache.ttl)
        self.vulnerability_lookup = vulnerability_lookup
        self.popularity_lookup = popularity_lookup
        self.now = now

    async def scan(self, manifest: Manifest) -> ScanResult:
        """Scan a manifest.

        Packages whose metadata cannot be fetched are left out of the result
        and counted in ``ScanResult.skipped``. Packages matching the ignore
        configuration are listed in ``ScanResult.ignored`` and take no part
        in the summary or the exit code.

        Args:
            manifest: Root package and its direct dependencies.

        Returns:
            The aggregated ScanResult.
        """
        started = time.perf_counter()
        builder = DependencyTreeBuilder(
            self.fetcher, self.cache, self.config.dependency_tree
        )
        skipped: Counter[str] = Counter()

        # Direct dependencies ignored by name are neither fetched nor expanded
        dependencies = {}
        ignored = []
        for name, version_range in manifest.dependencies.items():
            reason = ignore_reason(name, None, self.config.ignore)
            if reason is None:
                dependencies[name] = version_range
            else:
                ignored.append(IgnoredPackage(package=name, reason=reason))

        tree = None
        tree_summary = None
        tree_config = self.config.dependency_tree
        if tree_config.enabled and tree_config.analyze_transitive:
            tree = await self._get_tree(builder, manifest, dependencies)
            skipped.update({reason.value: n for reason, n in builder.skip_counts.items()})
            tree_summary = generate_tree_summary(tree)
            candidates = [
                (node.name, node.version, node) for node in collect_unique_packages(tree).values()
            ]
        else:
            candidates = [
                (name, version_range, None)
                for name, version_range in dependencies.items()
            ]

        logger.info("Analyzing %d packages of %s", len(candidates), manifest.name)
        results = await asyncio.gather(
            *(self._analyze_package(builder, name, spec, node) for name, spec, node in candidates),
            return_exceptions=True,
        )

        analyses = []
        for (name, _, _), result in zip(candidates, results):
            if isinstance(result, PackageAnalysis):
                analyses.append(result)
            elif isinstance(result, IgnoredPackage):
                logger.debug("Ignoring %s: %s", name, result.reason)
                ignored.append(result)
            else:
                logger.warning("Could not analyze %s: %s", name, result)
                skipped[ANALYSIS_FAILED] += 1

        minimum = self.config.scoring.minimum_score
        below_minimum = [
            a.package for a in analyses if minimum > 0 and a.score.overall < minimum
        ]

        return ScanResult(
            project_name=manifest.name,
            project_version=manifest.version,
            project_type=self.config.project_type,
            packages=analyses,
            summary=calculate_summary(analyses),
            recommendations=generate_recommendations(analyses),
            below_minimum=below_minimum,
            tree=tree,
            tree_summary=tree_summary,
            skipped=dict(skipped),
            ignored=ignored,
            exit_code=determine_exit_code(analyses, self.config.fail_on),
            duration_seconds=time.perf_counter() - started,
        )

    async def _get_tree(
        self,
        builder: DependencyTreeBuilder,
        manifest: Manifest,
        dependencies: dict[str, str],
    ) -> DependencyTreeNode:
        key = tree_cache_key(manifest.name, manifest.version)
        use_cache = self.config.dependency_tree.cache_trees

        if use_cache:
            cached = self.cache.get_tree(key)
            if cached is not None:
                logger.debug("Using cached dependency tree for %s", key)
                return cached

        tree, total = await builder.build_tree(
            manifest.name, manifest.version, dependencies
        )
        logger.info("Resolved %d nodes for %s@%s", total, manifest.name, manifest.version)

        if use_cache:
            self.cache.set_tree(key, tree)
        return tree

    async def _analyze_package(
        self,
        builder: DependencyTreeBuilder,
        name: str,
        version_spec: str,
        node: Optional[DependencyTreeNode],
    ) -> Union[PackageAnalysis, IgnoredPackage]:
        ignore_config = self.config.ignore
        # Name rules first, so ignored private packages are never fetched
        reason = ignore_reason(name, None, ignore_config)
        if reason is None:
            metadata = await builder.fetch_metadata(name)
            reason = ignore_reason(name, metadata, ignore_config)
        if reason is not None:
            return IgnoredPackage(package=name, reason=reason)

        version = resolve_version(metadata, version_spec)
        if version is None:
            raise LookupError(SkipReason.UNRESOLVED_VERSION.value)

        age = analyze_age(metadata, self.config.age, self.now)
        license = analyze_license(
            metadata, self.config.project_type, self.config.license, version
        )

        popularity: Optional[PopularityAnalysis] = None
        if self.popularity_lookup is not None:
            try:
                downloads = await self.popularity_lookup(name)
            except Exception as e:
                # Download counts are optional; score with the neutral default
                logger.debug("Popularity lookup failed for %s: %s", name, e)
                downloads = None
            if downloads is not None:
                popularity = analyze_popularity(name, version, downloads, age.age_days)

        vulnerability: Optional[VulnerabilityAnalysis] = None
        if self.vulnerability_lookup is not None:
            try:
                vulnerability = await self.vulnerability_lookup(name, version)
            except Exception as e:
                # Advisory sources are optional; score without them
                logger.debug("Vulnerability lookup failed for %s: %s", name, e)

        score = calculate_health_score(
            age,
            license,
            self.config.scoring,
            self.config.project_type,
            vulnerability,
            popularity,
        )

        return PackageAnalysis(
            package=name,
            version=version,
            age=age,
            license=license,
            score=score,
            overall_severity=get_overall_severity(age, license, vulnerability),
            vulnerability=vulnerability,
            popularity=popularity,
            depth=node.depth if node else 1,
            is_circular=node.is_circular if node else False,
            is_duplicate=node.is_duplicate if node else False,
        )
