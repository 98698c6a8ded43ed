"""Configuration for package_health.

Configuration is a tree of dataclasses with defaults for every option. It can
be loaded from a ``.package-health.toml`` file, or from the
``[tool.package-health]`` table of a ``pyproject.toml``.

Example .package-health.toml:
    projectType = "saas"

    [license]
    deny = ["AGPL-*", "SSPL-*"]
    warnOnUnknown = true

    [scoring.boosters]
    license = 3.5

    [dependencyTree]
    maxDepth = 2

    [ignore]
    scopes = ["@internal/*"]
"""

import re
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Literal, Optional, get_args

from package_health.models import ProjectType

CONFIG_FILE_NAMES = [".package-health.toml", "package-health.toml", "pyproject.toml"]
PYPROJECT_SECTION = "package-health"

FailOn = Literal["none", "info", "warning", "critical"]

PROJECT_TYPES: tuple[str, ...] = get_args(ProjectType)
FAIL_ON_VALUES: tuple[str, ...] = get_args(FailOn)

DEFAULT_ALLOW = [
    "MIT",
    "ISC",
    "BSD-2-Clause",
    "BSD-3-Clause",
    "Apache-2.0",
    "Unlicense",
    "CC0-1.0",
    "0BSD",
    "Zlib",
    "BSL-1.0",
]


class ConfigError(ValueError):
    """Raised when a configuration file is malformed."""


@dataclass
class AgeConfig:
    warn: str = "2y"
    critical: str = "5y"


@dataclass
class LicenseConfig:
    """License policy.

    Entries in allow/deny/warn are SPDX identifiers, optionally ending in a
    ``*`` wildcard (``GPL-*``).
    """

    allow: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOW))
    deny: list[str] = field(default_factory=list)
    warn: list[str] = field(default_factory=lambda: ["LGPL-*", "MPL-*", "EPL-*"])
    warn_on_unknown: bool = True
    check_patent_clauses: bool = True


@dataclass
class Boosters:
    """Positive weights applied to each scoring dimension."""

    age: float = 1.5
    deprecation: float = 4.0
    license: float = 3.0
    vulnerability: float = 2.0
    popularity: float = 1.0
    repository: float = 2.0
    update_frequency: float = 1.5


@dataclass
class ScoringConfig:
    enabled: bool = True
    minimum_score: int = 0
    boosters: Boosters = field(default_factory=Boosters)


@dataclass
class DependencyTreeConfig:
    """Dependency tree traversal options.

    Attributes:
        enabled: Build the full tree; when False only direct deps are scanned.
        max_depth: Nodes at this depth get no children; 0 means unlimited.
        analyze_transitive: When False the root gets no children at all.
        detect_circular: Enables ``stop_on_circular``.
        detect_duplicates: Flag packages seen at more than one version.
        stop_on_circular: Drop circular children instead of keeping a
            terminal node.
        cache_trees: Reuse built trees from the cache across scans.
    """

    enabled: bool = True
    max_depth: int = 3
    analyze_transitive: bool = True
    detect_circular: bool = True
    detect_duplicates: bool = True
    stop_on_circular: bool = False
    cache_trees: bool = True


@dataclass
class CacheConfig:
    enabled: bool = True
    ttl: float = 3600.0


@dataclass
class IgnoreConfig:
    """Packages excluded from analysis.

    Attributes:
        packages: Exact package names.
        scopes: Scope patterns such as ``@internal/*``.
        prefixes: Name patterns such as ``eslint-plugin-*``.
        authors: Case-insensitive substrings of the author or a maintainer.
        reasons: Explanation per package name, scope or prefix entry.
    """

    packages: list[str] = field(default_factory=list)
    scopes: list[str] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    authors: list[str] = field(default_factory=list)
    reasons: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Top-level configuration."""

    project_type: ProjectType = "commercial"
    age: AgeConfig = field(default_factory=AgeConfig)
    license: LicenseConfig = field(default_factory=LicenseConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    dependency_tree: DependencyTreeConfig = field(default_factory=DependencyTreeConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    fail_on: FailOn = "critical"
    include_dev_dependencies: bool = False


# License lists and minimum score per project type
_PROJECT_PRESETS: dict[str, dict[str, Any]] = {
    "commercial": {
        "deny": ["GPL-*", "AGPL-*", "SSPL-*"],
        "warn": ["LGPL-*", "MPL-*", "EPL-*"],
        "minimum_score": 60,
    },
    "saas": {
        "deny": ["AGPL-*", "SSPL-*"],
        "warn": ["GPL-*", "LGPL-*", "MPL-*"],
        "minimum_score": 65,
    },
    "library": {
        "deny": ["GPL-*", "AGPL-*", "LGPL-*"],
        "warn": ["MPL-*", "EPL-*"],
        "minimum_score": 70,
    },
    "startup": {
        "deny": ["AGPL-*", "SSPL-*"],
        "warn": ["GPL-*", "LGPL-*"],
        "minimum_score": 50,
    },
    "government": {
        "deny": ["GPL-*", "AGPL-*", "SSPL-*"],
        "warn": ["LGPL-*", "MPL-*"],
        "minimum_score": 70,
    },
    "internal": {"deny": [], "warn": ["AGPL-*"], "minimum_score": 50},
    "open-source": {"deny": [], "warn": [], "minimum_score": 0},
    "personal": {"deny": [], "warn": [], "minimum_score": 0},
    "educational": {"deny": [], "warn": [], "minimum_score": 0},
}


def project_type_defaults(project_type: str) -> Config:
    """Build a default configuration tuned for a project type.

    Args:
        project_type: One of PROJECT_TYPES.

    Returns:
        Config with the preset license lists and minimum score applied.
        Unknown or "custom" project types get the plain defaults.
    """
    config = Config()
    if project_type in PROJECT_TYPES:
        config.project_type = project_type  # type: ignore[assignment]
    preset = _PROJECT_PRESETS.get(project_type)
    if preset is None:
        return config
    config.license = replace(
        config.license, deny=list(preset["deny"]), warn=list(preset["warn"])
    )
    config.scoring = replace(config.scoring, minimum_score=preset["minimum_score"])
    return config


def _snake_case(key: str) -> str:
    """Convert camelCase/kebab-case keys to snake_case."""
    key = key.replace("-", "_")
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _merge(instance: Any, data: dict[str, Any], path: str) -> Any:
    """Overlay a TOML table onto a dataclass instance, validating keys."""
    known = {f.name: f for f in fields(instance)}
    updates: dict[str, Any] = {}

    for raw_key, value in data.items():
        key = _snake_case(raw_key)
        if key not in known:
            raise ConfigError(f"Unknown configuration key '{path}{raw_key}'")

        current = getattr(instance, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ConfigError(f"'{path}{raw_key}' must be a table")
            updates[key] = _merge(current, value, f"{path}{raw_key}.")
        elif isinstance(current, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"'{path}{raw_key}' must be a boolean")
            updates[key] = value
        elif isinstance(current, (int, float)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"'{path}{raw_key}' must be a number")
            if value < 0:
                raise ConfigError(f"'{path}{raw_key}' must not be negative")
            updates[key] = type(current)(value)
        elif isinstance(current, list):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"'{path}{raw_key}' must be a list of strings")
            updates[key] = list(value)
        elif isinstance(current, dict):
            if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
                raise ConfigError(f"'{path}{raw_key}' must be a table of strings")
            updates[key] = dict(value)
        else:
            updates[key] = value

    return replace(instance, **updates)


def build_config(data: dict[str, Any]) -> Config:
    """Build a Config from a parsed configuration table.

    The project type preset is applied first, then explicit values.

    Raises:
        ConfigError: If a key is unknown or a value has the wrong type.
    """
    project_type = data.get("projectType", data.get("project_type", "commercial"))
    if project_type not in PROJECT_TYPES:
        raise ConfigError(
            f"Invalid project type '{project_type}'. "
            f"Expected one of: {', '.join(PROJECT_TYPES)}"
        )

    config = _merge(project_type_defaults(project_type), data, "")

    if config.fail_on not in FAIL_ON_VALUES:
        raise ConfigError(
            f"Invalid failOn '{config.fail_on}'. "
            f"Expected one of: {', '.join(FAIL_ON_VALUES)}"
        )
    boosters = config.scoring.boosters
    if sum(getattr(boosters, f.name) for f in fields(boosters)) <= 0:
        raise ConfigError("At least one scoring booster must be positive")
    return config


def find_config_file(start_dir: Path) -> Optional[Path]:
    """Find a config file by searching up the directory hierarchy.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Path to the config file, or None if not found.
    """
    current = start_dir.resolve()
    while True:
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            if not candidate.exists():
                continue
            if name != "pyproject.toml" or _has_tool_section(candidate):
                return candidate

        parent = current.parent
        if parent == current:
            return None
        current = parent


def _has_tool_section(pyproject_path: Path) -> bool:
    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return False
    return PYPROJECT_SECTION in data.get("tool", {})


def load_config(path: Path) -> Config:
    """Load a Config from a TOML file.

    Args:
        path: Path to a .package-health.toml or pyproject.toml file.

    Returns:
        The validated configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the TOML is invalid or fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    if path.name == "pyproject.toml":
        try:
            data = data["tool"][PYPROJECT_SECTION]
        except KeyError:
            raise ConfigError(f"No [tool.{PYPROJECT_SECTION}] section in {path}") from None

    return build_config(data)
