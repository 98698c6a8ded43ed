"""Unit tests for the package.json reader."""

import json

import pytest

from package_health.manifest import ManifestError, read_manifest


@pytest.fixture
def package_json(tmp_path):
    """Write a package.json and return its path."""
    path = tmp_path / "package.json"
    path.write_text(
        json.dumps(
            {
                "name": "my-app",
                "version": "1.2.3",
                "dependencies": {"express": "^4.18.0", "lodash": "4.17.21"},
                "devDependencies": {"vitest": "^1.0.0", "lodash": "^4.0.0"},
                "peerDependencies": {"react": "^18.0.0", "express": "*"},
                "optionalDependencies": {"fsevents": "^2.3.0"},
            }
        )
    )
    return path


class TestReadManifest:
    """Test manifest parsing."""

    def test_read_file(self, package_json):
        manifest = read_manifest(package_json)

        assert manifest.name == "my-app"
        assert manifest.version == "1.2.3"
        assert manifest.path == package_json
        assert list(manifest.dependencies) == ["express", "lodash", "react", "fsevents"]
        assert manifest.dependencies["express"] == "^4.18.0"
        assert "vitest" not in manifest.dependencies
        assert manifest.dev_dependencies == {"vitest": "^1.0.0", "lodash": "^4.0.0"}

    def test_read_directory(self, package_json):
        manifest = read_manifest(package_json.parent)
        assert manifest.name == "my-app"

    def test_include_dev(self, package_json):
        manifest = read_manifest(package_json, include_dev=True)

        assert manifest.dependencies["vitest"] == "^1.0.0"
        assert manifest.dependencies["lodash"] == "^4.0.0"

    def test_no_dependencies(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text('{"name": "empty", "version": "0.0.1"}')

        assert read_manifest(path).dependencies == {}


class TestManifestErrors:
    """Test invalid manifests."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestError, match="not found"):
            read_manifest(tmp_path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text("{not json")

        with pytest.raises(ManifestError, match="Invalid JSON"):
            read_manifest(path)

    @pytest.mark.parametrize(
        "content",
        ['{"version": "1.0.0"}', '{"name": "x"}', '{"name": "", "version": "1.0.0"}', "[]"],
    )
    def test_missing_name_or_version(self, tmp_path, content):
        path = tmp_path / "package.json"
        path.write_text(content)

        with pytest.raises(ManifestError):
            read_manifest(path)

    def test_bad_dependency_table(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text('{"name": "x", "version": "1.0.0", "dependencies": ["express"]}')

        with pytest.raises(ManifestError, match="'dependencies' must be an object"):
            read_manifest(path)
