"""npm registry client.

Fetches package documents from the npm registry and validates them into
PackageMetadata, so the rest of the engine consumes a fully typed record.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from package_health.models import PackageMetadata
from package_health.registry.base import BaseRegistryClient, RegistryError

logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"
NPM_DOWNLOADS_URL = "https://api.npmjs.org/downloads/point/last-week"

# Scoped or unscoped npm package names
PACKAGE_NAME_PATTERN = re.compile(r"^(@[a-z0-9][a-z0-9._~-]*/)?[a-z0-9._~-][a-z0-9._~-]*$", re.IGNORECASE)
MAX_PACKAGE_NAME_LENGTH = 214


def validate_package_name(name: str) -> None:
    """Reject names that are not valid npm package names.

    Raises:
        RegistryError: If the name is empty, too long or malformed.
    """
    if not name or len(name) > MAX_PACKAGE_NAME_LENGTH or not PACKAGE_NAME_PATTERN.match(name):
        raise RegistryError(f"Invalid package name: {name!r}", name)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if isinstance(v, str)}


def _extract_license(value: Any) -> Optional[str]:
    # Older documents use {"type": "MIT", "url": ...}
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("type"), str):
        return value["type"]
    if isinstance(value, list):
        types = [_extract_license(item) for item in value]
        types = [t for t in types if t]
        if types:
            return " OR ".join(types) if len(types) > 1 else types[0]
    return None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _extract_person(value: Any) -> Optional[str]:
    # "Name <email> (url)" strings or {"name": ..., "email": ...} objects
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        for key in ("name", "email"):
            if isinstance(value.get(key), str) and value[key]:
                return value[key]
    return None


def _extract_repository_url(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict) and isinstance(value.get("url"), str):
        return value["url"] or None
    return None


def parse_registry_document(data: Any, requested_name: str) -> PackageMetadata:
    """Validate an npm registry document into PackageMetadata.

    Args:
        data: Decoded JSON body of ``GET /<package>``.
        requested_name: Name the document was requested for.

    Returns:
        The parsed metadata.

    Raises:
        RegistryError: If the document does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise RegistryError("Registry document is not an object", requested_name)

    versions_raw = data.get("versions", {})
    if not isinstance(versions_raw, dict):
        raise RegistryError("Registry document has malformed 'versions'", requested_name)

    dist_tags = data.get("dist-tags") or {}
    if not isinstance(dist_tags, dict):
        raise RegistryError("Registry document has malformed 'dist-tags'", requested_name)

    latest = dist_tags.get("latest")
    if not isinstance(latest, str):
        latest = next(reversed(versions_raw), None) if versions_raw else None
    if latest is None:
        raise RegistryError("Registry document lists no versions", requested_name)

    versions = {
        version: _string_map(manifest.get("dependencies"))
        for version, manifest in versions_raw.items()
        if isinstance(manifest, dict)
    }
    latest_manifest = versions_raw.get(latest, {})
    if not isinstance(latest_manifest, dict):
        latest_manifest = {}

    # Deprecation is recorded per version; the top-level key is a fallback
    deprecated = latest_manifest.get("deprecated", data.get("deprecated"))

    time: dict[str, datetime] = {}
    raw_time = data.get("time")
    if isinstance(raw_time, dict):
        for key, value in raw_time.items():
            parsed = _parse_timestamp(value)
            if parsed is not None:
                time[key] = parsed

    return PackageMetadata(
        name=data.get("name") if isinstance(data.get("name"), str) else requested_name,
        version=latest,
        license=_extract_license(latest_manifest.get("license", data.get("license"))),
        versions=versions,
        dependencies=versions.get(latest, {}),
        deprecated=bool(deprecated),
        deprecation_message=deprecated if isinstance(deprecated, str) else None,
        repository_url=_extract_repository_url(
            latest_manifest.get("repository", data.get("repository"))
        ),
        homepage=data.get("homepage") if isinstance(data.get("homepage"), str) else None,
        time=time,
        author=_extract_person(latest_manifest.get("author", data.get("author"))),
        maintainers=tuple(
            person
            for person in map(_extract_person, _as_list(data.get("maintainers")))
            if person
        ),
    )


class NpmRegistryClient(BaseRegistryClient):
    """Client for the public npm registry.

    Manages an aiohttp session for connection reuse across fetches. Use as
    an async context manager or call close() when done.
    """

    def __init__(
        self,
        registry_url: str = NPM_REGISTRY_URL,
        downloads_url: str = NPM_DOWNLOADS_URL,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the npm client.

        Args:
            registry_url: Base URL of the registry.
            downloads_url: Base URL of the weekly downloads endpoint.
            timeout: Total timeout in seconds for a single request.
        """
        self.registry_url = registry_url.rstrip("/")
        self.downloads_url = downloads_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def name(self) -> str:
        return "npm"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ttl_dns_cache=300)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    def package_url(self, name: str) -> str:
        # Scoped names keep the "@" but encode the "/"
        return f"{self.registry_url}/{quote(name, safe='@')}"

    async def fetch_metadata(self, name: str) -> PackageMetadata:
        validate_package_name(name)
        url = self.package_url(name)
        logger.debug("Fetching npm metadata from %s", url)

        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status == 404:
                    raise RegistryError(f"Package not found: {name}", name, 404)
                if response.status != 200:
                    raise RegistryError(
                        f"Registry returned status {response.status} for {name}",
                        name,
                        response.status,
                    )
                try:
                    data = await response.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise RegistryError(
                        f"Invalid JSON in registry response for {name}: {e}", name
                    ) from e
        except aiohttp.ClientError as e:
            raise RegistryError(f"Network error fetching {name}: {e}", name) from e

        return parse_registry_document(data, name)

    async def fetch_weekly_downloads(self, name: str) -> Optional[int]:
        """Fetch last week's download count.

        Returns:
            The download count, or None if the endpoint did not answer.
        """
        url = f"{self.downloads_url}/{quote(name, safe='@')}"
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status != 200:
                    logger.debug(
                        "Download stats returned status %d for %s", response.status, name
                    )
                    return None
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("Could not fetch download stats for %s: %s", name, e)
            return None

        downloads = data.get("downloads") if isinstance(data, dict) else None
        return downloads if isinstance(downloads, int) else None
