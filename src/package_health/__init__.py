"""Package Health - Dependency health analysis engine.

This package resolves a project's transitive dependency tree, classifies
each package's license against a policy and combines age, license,
vulnerability and popularity signals into a 0-100 health score.
"""

__version__ = "0.1.0"

from package_health.cache import PackageCache
from package_health.config import Config, load_config
from package_health.models import (
    DependencyTreeNode,
    HealthScore,
    LicenseAnalysis,
    PackageMetadata,
    ScanResult,
)
from package_health.scan import HealthScanner
from package_health.tree import DependencyTreeBuilder

__all__ = [
    "__version__",
    "Config",
    "DependencyTreeBuilder",
    "DependencyTreeNode",
    "HealthScanner",
    "HealthScore",
    "LicenseAnalysis",
    "PackageCache",
    "PackageMetadata",
    "ScanResult",
    "load_config",
]
