"""Unit tests for the npm registry client."""

import asyncio
from datetime import UTC, datetime
from typing import Any, AsyncGenerator

import pytest
from aiohttp import ClientConnectionError
from aioresponses import aioresponses

from package_health.registry import NpmRegistryClient, RegistryError, parse_registry_document
from package_health.registry.npm import validate_package_name

EXPRESS_URL = "https://registry.npmjs.org/express"
DOWNLOADS_URL = "https://api.npmjs.org/downloads/point/last-week/express"


@pytest.fixture
def registry_document() -> dict[str, Any]:
    """Trimmed npm registry document for express."""
    return {
        "name": "express",
        "dist-tags": {"latest": "4.18.2"},
        "versions": {
            "4.17.1": {
                "version": "4.17.1",
                "license": "MIT",
                "dependencies": {"accepts": "~1.3.7"},
            },
            "4.18.2": {
                "version": "4.18.2",
                "license": "MIT",
                "dependencies": {"accepts": "~1.3.8", "body-parser": "1.20.1"},
                "repository": {"type": "git", "url": "git+https://github.com/expressjs/express.git"},
            },
        },
        "time": {
            "created": "2010-12-29T19:38:25.450Z",
            "modified": "2022-10-08T20:35:02.123Z",
            "4.18.2": "2022-10-08T20:35:01.000Z",
        },
        "homepage": "http://expressjs.com/",
    }


@pytest.fixture
async def npm_client() -> AsyncGenerator[NpmRegistryClient, None]:
    """Return an NpmRegistryClient instance for testing."""
    client = NpmRegistryClient()
    yield client
    await client.close()


class TestParseRegistryDocument:
    """Test validation of registry documents."""

    def test_parse(self, registry_document):
        metadata = parse_registry_document(registry_document, "express")

        assert metadata.name == "express"
        assert metadata.version == "4.18.2"
        assert metadata.license == "MIT"
        assert metadata.dependencies == {"accepts": "~1.3.8", "body-parser": "1.20.1"}
        assert metadata.versions["4.17.1"] == {"accepts": "~1.3.7"}
        assert metadata.repository_url == "git+https://github.com/expressjs/express.git"
        assert metadata.homepage == "http://expressjs.com/"
        assert metadata.deprecated is False
        assert metadata.time["modified"] == datetime(2022, 10, 8, 20, 35, 2, 123000, tzinfo=UTC)

    def test_legacy_license_object(self, registry_document):
        registry_document["versions"]["4.18.2"]["license"] = {"type": "BSD-3-Clause"}
        assert parse_registry_document(registry_document, "express").license == "BSD-3-Clause"

    def test_license_list_becomes_expression(self, registry_document):
        registry_document["versions"]["4.18.2"]["license"] = [{"type": "MIT"}, {"type": "Apache-2.0"}]
        assert parse_registry_document(registry_document, "express").license == "MIT OR Apache-2.0"

    def test_deprecated_latest_version(self, registry_document):
        registry_document["versions"]["4.18.2"]["deprecated"] = "use something else"

        metadata = parse_registry_document(registry_document, "express")

        assert metadata.deprecated is True
        assert metadata.deprecation_message == "use something else"

    def test_author_and_maintainers(self, registry_document):
        registry_document["versions"]["4.18.2"]["author"] = {"name": "TJ Holowaychuk", "email": "tj@example.com"}
        registry_document["maintainers"] = [{"name": "wesleytodd"}, {"email": "ulises@example.com"}, {}]

        metadata = parse_registry_document(registry_document, "express")

        assert metadata.author == "TJ Holowaychuk"
        assert metadata.maintainers == ("wesleytodd", "ulises@example.com")

    def test_string_author(self, registry_document):
        registry_document["author"] = "Jane Doe <jane@example.com>"
        assert parse_registry_document(registry_document, "express").author == "Jane Doe <jane@example.com>"

    def test_invalid_timestamps_are_skipped(self, registry_document):
        registry_document["time"]["created"] = "not a date"
        assert "created" not in parse_registry_document(registry_document, "express").time

    def test_missing_dist_tags_uses_last_version(self, registry_document):
        del registry_document["dist-tags"]
        assert parse_registry_document(registry_document, "express").version == "4.18.2"

    @pytest.mark.parametrize(
        "document",
        [
            [],
            {"versions": []},
            {"dist-tags": "latest", "versions": {}},
            {"versions": {}},
        ],
    )
    def test_malformed_documents(self, document):
        with pytest.raises(RegistryError) as exc_info:
            parse_registry_document(document, "broken")
        assert exc_info.value.package_name == "broken"


class TestPackageNames:
    """Test npm package name validation."""

    @pytest.mark.parametrize("name", ["express", "@types/node", "lodash.merge", "a-b_c"])
    def test_valid(self, name):
        validate_package_name(name)

    @pytest.mark.parametrize("name", ["", "../etc/passwd", "has space", "a" * 215, "@scope/"])
    def test_invalid(self, name):
        with pytest.raises(RegistryError, match="Invalid package name"):
            validate_package_name(name)

    def test_scoped_url_encoding(self):
        client = NpmRegistryClient()
        assert client.package_url("@types/node") == "https://registry.npmjs.org/@types%2Fnode"


class TestFetch:
    """Test HTTP fetching."""

    @pytest.mark.asyncio
    async def test_fetch_metadata(self, npm_client, registry_document):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, payload=registry_document)

            metadata = await npm_client.fetch_metadata("express")

        assert metadata.name == "express"
        assert metadata.version == "4.18.2"

    @pytest.mark.asyncio
    async def test_client_is_callable(self, npm_client, registry_document):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, payload=registry_document)

            metadata = await npm_client("express")

        assert metadata.license == "MIT"

    @pytest.mark.asyncio
    async def test_not_found(self, npm_client):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, status=404)

            with pytest.raises(RegistryError) as exc_info:
                await npm_client.fetch_metadata("express")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_server_error(self, npm_client):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, status=503)

            with pytest.raises(RegistryError, match="status 503"):
                await npm_client.fetch_metadata("express")

    @pytest.mark.asyncio
    async def test_invalid_json(self, npm_client):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, body="<html>", content_type="text/html")

            with pytest.raises(RegistryError, match="Invalid JSON"):
                await npm_client.fetch_metadata("express")

    @pytest.mark.asyncio
    async def test_network_error(self, npm_client):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, exception=ClientConnectionError("refused"))

            with pytest.raises(RegistryError, match="Network error"):
                await npm_client.fetch_metadata("express")

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, registry_document):
        with aioresponses() as mock:
            mock.get(EXPRESS_URL, payload=registry_document)

            async with NpmRegistryClient() as client:
                await client.fetch_metadata("express")
                session = client._session

        assert session is not None
        assert session.closed


class TestWeeklyDownloads:
    """Test the download statistics endpoint."""

    @pytest.mark.asyncio
    async def test_downloads(self, npm_client):
        with aioresponses() as mock:
            mock.get(DOWNLOADS_URL, payload={"downloads": 31000000, "package": "express"})

            assert await npm_client.fetch_weekly_downloads("express") == 31000000

    @pytest.mark.asyncio
    async def test_downloads_unavailable(self, npm_client):
        with aioresponses() as mock:
            mock.get(DOWNLOADS_URL, status=500)

            assert await npm_client.fetch_weekly_downloads("express") is None

    @pytest.mark.asyncio
    async def test_downloads_timeout(self, npm_client):
        with aioresponses() as mock:
            mock.get(DOWNLOADS_URL, exception=asyncio.TimeoutError())

            assert await npm_client.fetch_weekly_downloads("express") is None
