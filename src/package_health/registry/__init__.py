"""Package registry clients.

This module provides the metadata-fetcher interface consumed by the tree
builder, and the npm registry client implementing it.
"""

from package_health.registry.base import BaseRegistryClient, MetadataFetcher, RegistryError
from package_health.registry.npm import NpmRegistryClient, parse_registry_document

__all__ = [
    "BaseRegistryClient",
    "MetadataFetcher",
    "NpmRegistryClient",
    "RegistryError",
    "parse_registry_document",
]
