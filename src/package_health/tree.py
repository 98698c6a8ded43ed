"""Dependency tree builder.

Resolves a manifest's direct dependencies into the full transitive graph
through an injected metadata fetcher, detecting circular dependencies and
packages resolved to more than one version.

Children of a node are expanded concurrently and reassembled in declaration
order. Registry fetches are gated by one semaphore shared by the whole
traversal, and each fetch races a fixed timeout. A child whose resolution
fails is dropped and counted in ``skip_counts``; it never aborts the build.
"""

import asyncio
import logging
from collections import Counter
from typing import Iterator, Optional, Union

from package_health.cache import PackageCache
from package_health.config import DependencyTreeConfig
from package_health.models import (
    DependencyTreeNode,
    DependencyTreeSummary,
    PackageMetadata,
    SkipReason,
)
from package_health.registry.base import MetadataFetcher

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
DEFAULT_FETCH_TIMEOUT = 15.0


def resolve_version(metadata: PackageMetadata, version_range: str) -> Optional[str]:
    """Resolve a version range to a concrete published version.

    A range naming a published version literally resolves to it; anything
    else resolves to the registry's latest version. This is not semver
    range matching.

    Args:
        metadata: Registry metadata of the package.
        version_range: Range string from the parent's dependency map.

    Returns:
        The resolved version, or None if the package has no versions.
    """
    candidate = version_range.strip()
    if candidate in metadata.versions:
        return candidate
    if metadata.version and (not metadata.versions or metadata.version in metadata.versions):
        return metadata.version
    return None


def iter_nodes(root: DependencyTreeNode) -> Iterator[DependencyTreeNode]:
    """Yield every node of a tree in depth-first pre-order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.dependencies))


def count_nodes(root: DependencyTreeNode) -> int:
    return sum(1 for _ in iter_nodes(root))


def collect_unique_packages(root: DependencyTreeNode) -> dict[str, DependencyTreeNode]:
    """Flatten a tree into one node per ``name@version``.

    The root is not included. When the same package appears several times
    the shallowest occurrence wins, ties going to the first one visited.

    Returns:
        Map of ``name@version`` to its representative node, in first-seen
        order.
    """
    unique: dict[str, DependencyTreeNode] = {}
    for node in iter_nodes(root):
        if node is root:
            continue
        existing = unique.get(node.spec)
        if existing is None or node.depth < existing.depth:
            unique[node.spec] = node
    return unique


def generate_tree_summary(root: DependencyTreeNode) -> DependencyTreeSummary:
    """Compute summary metrics for a tree by traversal."""
    total = 0
    max_depth = 0
    circular = 0
    duplicate_names: set[str] = set()
    specs: set[str] = set()

    for node in iter_nodes(root):
        total += 1
        max_depth = max(max_depth, node.depth)
        if node is not root:
            specs.add(node.spec)
        if node.is_circular:
            circular += 1
        if node.is_duplicate:
            duplicate_names.add(node.name)

    return DependencyTreeSummary(
        total_nodes=total,
        unique_packages=len(specs),
        max_depth=max_depth,
        circular_dependencies=circular,
        duplicate_packages=len(duplicate_names),
    )


class DependencyTreeBuilder:
    """Builds dependency trees through a cache-backed metadata fetcher.

    Traversal state is reset at the start of every ``build_tree`` call, so
    one builder can scan several manifests in sequence. Concurrent builds
    must each use their own builder; they may share the cache.

    Attributes:
        config: Tree options (depth limit, circular/duplicate handling).
        skip_counts: Children dropped during the last build, per SkipReason.
        fetched: Metadata seen during the last build, by package name.
    """

    def __init__(
        self,
        fetcher: MetadataFetcher,
        cache: PackageCache,
        config: Optional[DependencyTreeConfig] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        """Initialize the builder.

        Args:
            fetcher: Async callable returning PackageMetadata for a name.
            cache: Cache consulted before every fetch.
            config: Tree options, defaults when omitted.
            concurrency: Maximum number of fetches in flight.
            timeout: Seconds each fetch may take before it is abandoned.
        """
        self.fetcher = fetcher
        self.cache = cache
        self.config = config or DependencyTreeConfig()
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(concurrency)
        self._visited: dict[str, set[str]] = {}
        self._package_versions: dict[str, set[str]] = {}
        self.skip_counts: Counter[SkipReason] = Counter()
        self.fetched: dict[str, PackageMetadata] = {}

    def _reset(self) -> None:
        self._visited = {}
        self._package_versions = {}
        self.skip_counts = Counter()
        self.fetched = {}

    async def build_tree(
        self,
        root_name: str,
        root_version: str,
        dependencies: dict[str, str],
    ) -> tuple[DependencyTreeNode, int]:
        """Build the dependency tree of a root package.

        Args:
            root_name: Name of the root (project) package.
            root_version: Version of the root package.
            dependencies: Direct dependencies, name -> version range.

        Returns:
            Tuple of (root node, total node count including the root).
        """
        self._reset()

        root = DependencyTreeNode(name=root_name, version=root_version, depth=0)
        self._track_version(root_name, root_version)

        await self._build_children(root, dependencies, [])

        total = count_nodes(root)
        if self.skip_counts:
            logger.info(
                "Built tree for %s with %d nodes, skipped: %s",
                root.spec,
                total,
                ", ".join(f"{r.value}={n}" for r, n in sorted(self.skip_counts.items())),
            )
        else:
            logger.debug("Built tree for %s with %d nodes", root.spec, total)
        return root, total

    def _track_version(self, name: str, version: str) -> None:
        self._package_versions.setdefault(name, set()).add(version)

    def _is_duplicate(self, name: str) -> bool:
        if not self.config.detect_duplicates:
            return False
        return len(self._package_versions.get(name, ())) > 1

    def _duplicate_versions(self, name: str) -> list[str]:
        return sorted(self._package_versions.get(name, ()))

    @staticmethod
    def _is_circular(name: str, path: list[str]) -> bool:
        prefix = f"{name}@"
        return any(entry.startswith(prefix) for entry in path)

    async def _build_children(
        self,
        parent: DependencyTreeNode,
        dependencies: dict[str, str],
        path: list[str],
    ) -> None:
        if not self.config.analyze_transitive:
            return

        max_depth = self.config.max_depth
        if max_depth and max_depth > 0 and parent.depth >= max_depth:
            return

        current_path = [*path, parent.spec]

        results = await asyncio.gather(
            *(
                self._build_child(parent, name, version_range, current_path)
                for name, version_range in dependencies.items()
            ),
            return_exceptions=True,
        )

        children = []
        for (name, _), result in zip(dependencies.items(), results):
            if isinstance(result, DependencyTreeNode):
                children.append(result)
            elif isinstance(result, SkipReason):
                self.skip_counts[result] += 1
                logger.debug("Skipped %s under %s: %s", name, parent.spec, result.value)
            else:
                # Any other exception inside a child's expansion
                self.skip_counts[SkipReason.FETCH_FAILED] += 1
                logger.debug("Skipped %s under %s: %s", name, parent.spec, result)

        parent.dependencies = children

    async def _build_child(
        self,
        parent: DependencyTreeNode,
        name: str,
        version_range: str,
        path: list[str],
    ) -> Union[DependencyTreeNode, SkipReason]:
        is_circular = self._is_circular(name, path)
        if is_circular and self.config.detect_circular and self.config.stop_on_circular:
            return SkipReason.CIRCULAR_STOPPED

        try:
            metadata = await self.fetch_metadata(name)
        except asyncio.TimeoutError:
            logger.warning("Timed out fetching %s after %.0fs", name, self.timeout)
            return SkipReason.TIMEOUT
        except Exception as e:
            logger.debug("Failed to fetch %s: %s", name, e)
            return SkipReason.FETCH_FAILED

        version = resolve_version(metadata, version_range)
        if version is None:
            return SkipReason.UNRESOLVED_VERSION

        flag_circular = is_circular and self.config.detect_circular

        visited_versions = self._visited.setdefault(name, set())
        if version in visited_versions:
            # Already expanded elsewhere in this tree
            return self._make_node(parent, name, version, flag_circular, path)

        visited_versions.add(version)
        self._track_version(name, version)
        child = self._make_node(parent, name, version, flag_circular, path)

        if not is_circular:
            child_dependencies = metadata.dependencies_for(version)
            if child_dependencies:
                await self._build_children(child, child_dependencies, path)

        return child

    def _make_node(
        self,
        parent: DependencyTreeNode,
        name: str,
        version: str,
        is_circular: bool,
        path: list[str],
    ) -> DependencyTreeNode:
        is_duplicate = self._is_duplicate(name)
        return DependencyTreeNode(
            name=name,
            version=version,
            depth=parent.depth + 1,
            parent=parent.name,
            is_circular=is_circular,
            is_duplicate=is_duplicate,
            duplicate_versions=self._duplicate_versions(name) if is_duplicate else None,
            circular_path=list(path) if is_circular else None,
        )

    async def fetch_metadata(self, name: str) -> PackageMetadata:
        """Return metadata from the cache, fetching and caching it on a miss.

        Metadata already seen during the current build is reused even when
        the cache is disabled.

        Raises:
            asyncio.TimeoutError: If the fetch exceeded the timeout.
            Exception: Whatever the fetcher raised.
        """
        if name in self.fetched:
            return self.fetched[name]

        metadata = self.cache.get_metadata(name)
        if metadata is None:
            async with self._semaphore:
                metadata = await asyncio.wait_for(self.fetcher(name), timeout=self.timeout)
            self.cache.set_metadata(name, metadata)

        self.fetched[name] = metadata
        return metadata
