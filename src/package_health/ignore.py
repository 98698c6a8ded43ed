"""Package ignore rules.

Matches packages against the ``[ignore]`` configuration: exact names, scope
and prefix patterns with ``*`` wildcards, and author or maintainer names.
"""

import fnmatch
from typing import Optional

from package_health.config import IgnoreConfig
from package_health.models import PackageMetadata


def _first_match(name: str, patterns: list[str]) -> Optional[str]:
    return next((p for p in patterns if fnmatch.fnmatchcase(name, p)), None)


def _matches_author(metadata: PackageMetadata, authors: list[str]) -> bool:
    if not authors:
        return False
    people = [p.lower() for p in (metadata.author, *metadata.maintainers) if p]
    return any(a.lower() in person for a in authors for person in people)


def ignore_reason(
    name: str, metadata: Optional[PackageMetadata], config: IgnoreConfig
) -> Optional[str]:
    """Return why a package is ignored, or None if it should be analyzed.

    Rules are checked in order: exact name, scope, prefix, then author.
    Author rules need metadata and are skipped when it is not available.

    Args:
        name: Package name.
        metadata: Registry metadata, if already fetched.
        config: Ignore configuration.

    Returns:
        The configured reason for the matching entry, or a default one.
    """
    if name in config.packages:
        return config.reasons.get(name, "Explicitly ignored")

    scope = _first_match(name, config.scopes)
    if scope is not None:
        return config.reasons.get(scope, f"Matches scope: {scope}")

    prefix = _first_match(name, config.prefixes)
    if prefix is not None:
        return config.reasons.get(prefix, f"Matches prefix: {prefix}")

    if metadata is not None and _matches_author(metadata, config.authors):
        return "Author is in ignore list"

    return None
