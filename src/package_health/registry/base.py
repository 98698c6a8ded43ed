"""Base interface for package registry clients.

Registry clients fetch package metadata from a remote registry. The tree
builder and the scanner depend only on the shape of the returned
PackageMetadata, never on the transport.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from package_health.models import PackageMetadata

# An async callable resolving a package name to its registry metadata
MetadataFetcher = Callable[[str], Awaitable[PackageMetadata]]


class RegistryError(Exception):
    """Raised when package metadata cannot be fetched or understood.

    Attributes:
        package_name: Name of the package being fetched.
        status_code: HTTP status code, when the registry answered.
    """

    def __init__(
        self, message: str, package_name: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.package_name = package_name
        self.status_code = status_code


class BaseRegistryClient(ABC):
    """Abstract base class for registry clients.

    Instances are callable, so a client can be handed to the tree builder
    directly as its metadata fetcher.
    """

    @abstractmethod
    async def fetch_metadata(self, name: str) -> PackageMetadata:
        """Fetch registry metadata for a package.

        Args:
            name: Package name.

        Returns:
            PackageMetadata for the package.

        Raises:
            RegistryError: If the package is missing or the fetch failed.
        """
        ...

    async def fetch_weekly_downloads(self, name: str) -> Optional[int]:
        """Return last week's download count, or None if unsupported."""
        return None

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the registry name for logging/debugging.

        Returns:
            Name like "npm".
        """
        ...

    async def close(self) -> None:
        """Release any open resources."""

    async def __call__(self, name: str) -> PackageMetadata:
        return await self.fetch_metadata(name)

    async def __aenter__(self) -> "BaseRegistryClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
