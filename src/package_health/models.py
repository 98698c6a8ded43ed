"""Core data models for package_health.

This module defines the data structures shared across the health analysis
engine: registry metadata, dependency tree nodes, per-dimension analyses,
health scores and the aggregate scan result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

Severity = Literal["ok", "info", "warning", "critical"]

LicenseCategory = Literal[
    "commercial-friendly",
    "commercial-warning",
    "commercial-incompatible",
    "unlicensed",
    "unknown",
]

BlueOakRating = Literal["gold", "silver", "bronze", "lead", "unrated"]

HealthRating = Literal["excellent", "good", "fair", "poor"]

ProjectType = Literal[
    "commercial",
    "saas",
    "open-source",
    "personal",
    "internal",
    "library",
    "startup",
    "government",
    "educational",
    "custom",
]

SEVERITY_ORDER: dict[str, int] = {"ok": 0, "info": 1, "warning": 2, "critical": 3}


def worst_severity(*severities: Optional[str]) -> Severity:
    """Return the most severe of the given severities, ignoring None."""
    present = [s for s in severities if s is not None]
    if not present:
        return "ok"
    return max(present, key=lambda s: SEVERITY_ORDER[s])  # type: ignore[return-value]


@dataclass(frozen=True)
class PackageMetadata:
    """Registry record for one package.

    Immutable once fetched; shared read-only by the tree builder and the
    analyzers.

    Attributes:
        name: Package name (e.g., "express").
        version: Version the registry tags as latest.
        license: Declared license string, verbatim from the registry.
        versions: Map of published version -> its dependency map.
        dependencies: Dependency map of the latest version.
        deprecated: True if the registry marks the package deprecated.
        deprecation_message: Optional deprecation notice.
        repository_url: Optional source repository URL.
        homepage: Optional homepage URL.
        time: Map of version (or "created"/"modified") -> publish timestamp.
        author: Author name or email of the latest version.
        maintainers: Maintainer names or emails.
    """

    name: str
    version: str
    license: Optional[str] = None
    versions: dict[str, dict[str, str]] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)
    deprecated: bool = False
    deprecation_message: Optional[str] = None
    repository_url: Optional[str] = None
    homepage: Optional[str] = None
    time: dict[str, datetime] = field(default_factory=dict)
    author: Optional[str] = None
    maintainers: tuple[str, ...] = ()

    def dependencies_for(self, version: str) -> dict[str, str]:
        """Return the dependency map of a published version.

        Falls back to the latest dependency map when the version is not
        present in the per-version table.
        """
        if version in self.versions:
            return self.versions[version]
        return self.dependencies


@dataclass
class DependencyTreeNode:
    """One resolved package in a dependency tree.

    Attributes:
        name: Package name.
        version: Resolved version.
        depth: Distance from the root (root is 0).
        parent: Name of the parent node, None for the root.
        dependencies: Child nodes in declaration order.
        is_circular: True if the name already appears on the ancestor path.
        is_duplicate: True if more than one version of the name was seen.
        duplicate_versions: All versions seen for the name, when duplicate.
        circular_path: Ancestor path (``name@version`` entries), when circular.
    """

    name: str
    version: str
    depth: int
    parent: Optional[str] = None
    dependencies: list["DependencyTreeNode"] = field(default_factory=list)
    is_circular: bool = False
    is_duplicate: bool = False
    duplicate_versions: Optional[list[str]] = None
    circular_path: Optional[list[str]] = None

    @property
    def spec(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class DependencyTreeSummary:
    """Metrics derived from a dependency tree by traversal."""

    total_nodes: int
    unique_packages: int
    max_depth: int
    circular_dependencies: int
    duplicate_packages: int


class SkipReason(str, Enum):
    """Why a candidate child was left out of the tree."""

    CIRCULAR_STOPPED = "circular-stopped"
    FETCH_FAILED = "fetch-failed"
    TIMEOUT = "timeout"
    UNRESOLVED_VERSION = "unresolved-version"


@dataclass(frozen=True)
class LicenseAnalysis:
    """License classification of one package under a project policy."""

    package: str
    version: str
    license: str
    category: LicenseCategory
    blue_oak_rating: BlueOakRating
    severity: Severity
    commercial_use: bool
    is_dual_license: bool = False
    has_patent_clause: bool = False
    spdx_id: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class AgeAnalysis:
    """Staleness and maintenance status of one package."""

    package: str
    version: str
    last_publish: Optional[datetime]
    age_days: int
    age_human: str
    deprecated: bool
    severity: Severity
    has_repository: bool
    deprecation_message: Optional[str] = None
    repository_url: Optional[str] = None


@dataclass(frozen=True)
class Advisory:
    """A single known vulnerability affecting a package."""

    id: str
    severity: Literal["critical", "high", "moderate", "low"]
    summary: str = ""
    cve_id: Optional[str] = None


@dataclass(frozen=True)
class VulnerabilityAnalysis:
    """Known vulnerabilities of one package, counted per severity tier."""

    package: str
    version: str
    critical_count: int = 0
    high_count: int = 0
    moderate_count: int = 0
    low_count: int = 0
    advisories: tuple[Advisory, ...] = ()

    @property
    def total_count(self) -> int:
        return self.critical_count + self.high_count + self.moderate_count + self.low_count


@dataclass(frozen=True)
class PopularityAnalysis:
    """Download-based popularity of one package."""

    package: str
    version: str
    weekly_downloads: int
    score: float
    tier: Literal["unpopular", "niche", "moderate", "popular", "very-popular"]
    severity: Literal["ok", "info", "warning"]
    age_adjusted: bool = False


@dataclass(frozen=True)
class DimensionScores:
    """The seven normalized (0-1) dimension scores behind a health score."""

    age: float
    deprecation: float
    license: float
    vulnerability: float
    popularity: float
    repository: float
    update_frequency: float


@dataclass(frozen=True)
class HealthScore:
    """Weighted overall score (0-100) with its rating and dimensions."""

    overall: int
    rating: HealthRating
    dimensions: DimensionScores


@dataclass(frozen=True)
class PackageAnalysis:
    """Everything known about one package after a scan."""

    package: str
    version: str
    age: AgeAnalysis
    license: LicenseAnalysis
    score: HealthScore
    overall_severity: Severity
    vulnerability: Optional[VulnerabilityAnalysis] = None
    popularity: Optional[PopularityAnalysis] = None
    depth: int = 1
    is_circular: bool = False
    is_duplicate: bool = False


@dataclass(frozen=True)
class Recommendation:
    package: str
    reason: str
    priority: Literal["low", "medium", "high"]


@dataclass(frozen=True)
class IgnoredPackage:
    """A package excluded from analysis by the ignore configuration."""

    package: str
    reason: str


@dataclass(frozen=True)
class ScanSummary:
    """Aggregate counts over all analyzed packages."""

    total: int
    excellent: int
    good: int
    fair: int
    poor: int
    average_score: int
    risk_level: Literal["low", "medium", "high", "critical"]
    critical_issues: int
    warning_issues: int
    info_issues: int


@dataclass
class ScanResult:
    """Result of scanning one manifest, consumed by reporters."""

    project_name: str
    project_version: str
    project_type: ProjectType
    packages: list[PackageAnalysis]
    summary: ScanSummary
    recommendations: list[Recommendation] = field(default_factory=list)
    below_minimum: list[str] = field(default_factory=list)
    tree: Optional[DependencyTreeNode] = None
    tree_summary: Optional[DependencyTreeSummary] = None
    ignored: list[IgnoredPackage] = field(default_factory=list)
    skipped: dict[str, int] = field(default_factory=dict)
    exit_code: int = 0
    duration_seconds: float = 0.0
