"""Reader for package.json manifests.

Extracts the root package name, version and direct dependency map that the
tree builder starts from.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

MANIFEST_FILE_NAME = "package.json"


class ManifestError(ValueError):
    """Raised when a manifest is missing or malformed."""


@dataclass
class Manifest:
    """Root package of a scan.

    Attributes:
        name: Package name from the manifest.
        version: Package version from the manifest.
        dependencies: Direct dependencies to scan, name -> version range.
        dev_dependencies: Development dependencies, name -> version range.
        path: File the manifest was read from, if any.
    """

    name: str
    version: str
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    path: Optional[Path] = None


def _dependency_table(data: dict[str, Any], key: str, path: Path) -> dict[str, str]:
    table = data.get(key) or {}
    if not isinstance(table, dict):
        raise ManifestError(f"'{key}' must be an object in {path}")
    for name, version in table.items():
        if not isinstance(version, str):
            raise ManifestError(f"Version of '{name}' in '{key}' must be a string in {path}")
    return dict(table)


def read_manifest(path: Path, include_dev: bool = False) -> Manifest:
    """Read a package.json manifest.

    Production dependencies come first; with ``include_dev`` development
    dependencies are merged in. Peer and optional dependencies are added
    for names not already present.

    Args:
        path: A package.json file, or a directory containing one.
        include_dev: Also scan devDependencies.

    Returns:
        The parsed Manifest.

    Raises:
        ManifestError: If the file is missing, not valid JSON, or lacks a
            name or version.
    """
    if path.is_dir():
        path = path / MANIFEST_FILE_NAME

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ManifestError(f"{MANIFEST_FILE_NAME} not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest root must be an object in {path}")

    name = data.get("name")
    version = data.get("version")
    if not isinstance(name, str) or not name or not isinstance(version, str) or not version:
        raise ManifestError(f"Invalid {MANIFEST_FILE_NAME}: missing name or version in {path}")

    dependencies = _dependency_table(data, "dependencies", path)
    dev_dependencies = _dependency_table(data, "devDependencies", path)

    if include_dev:
        dependencies.update(dev_dependencies)

    for key in ("peerDependencies", "optionalDependencies"):
        for dep_name, dep_range in _dependency_table(data, key, path).items():
            dependencies.setdefault(dep_name, dep_range)

    return Manifest(
        name=name,
        version=version,
        dependencies=dependencies,
        dev_dependencies=dev_dependencies,
        path=path,
    )
