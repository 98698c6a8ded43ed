"""Unit tests for package ignore rules."""

import pytest

from package_health.config import IgnoreConfig
from package_health.ignore import ignore_reason


class TestIgnoreReason:
    """Test matching of ignore rules."""

    def test_not_ignored(self, metadata_factory):
        config = IgnoreConfig(packages=["lodash"], scopes=["@corp/*"])
        assert ignore_reason("express", metadata_factory("express"), config) is None

    def test_exact_name(self):
        config = IgnoreConfig(packages=["lodash"])

        assert ignore_reason("lodash", None, config) == "Explicitly ignored"
        assert ignore_reason("lodash.merge", None, config) is None

    def test_configured_reason(self):
        config = IgnoreConfig(
            packages=["lodash"],
            scopes=["@corp/*"],
            reasons={"lodash": "Audited", "@corp/*": "First-party code"},
        )

        assert ignore_reason("lodash", None, config) == "Audited"
        assert ignore_reason("@corp/ui", None, config) == "First-party code"

    @pytest.mark.parametrize("name,expected", [("@corp/ui", True), ("@corp/db", True), ("@corporate/ui", False)])
    def test_scope(self, name, expected):
        config = IgnoreConfig(scopes=["@corp/*"])
        assert (ignore_reason(name, None, config) == "Matches scope: @corp/*") is expected

    def test_prefix(self):
        config = IgnoreConfig(prefixes=["eslint-plugin-*"])

        assert ignore_reason("eslint-plugin-react", None, config) == "Matches prefix: eslint-plugin-*"
        assert ignore_reason("eslint", None, config) is None

    def test_author_substring_is_case_insensitive(self, metadata_factory):
        config = IgnoreConfig(authors=["acme corp"])
        metadata = metadata_factory("tool", author="ACME Corp <oss@acme.example>")

        assert ignore_reason("tool", metadata, config) == "Author is in ignore list"

    def test_maintainer_matches(self, metadata_factory):
        config = IgnoreConfig(authors=["jdoe"])
        metadata = metadata_factory("tool", maintainers=("alice", "jdoe"))

        assert ignore_reason("tool", metadata, config) == "Author is in ignore list"

    def test_author_rules_need_metadata(self):
        config = IgnoreConfig(authors=["jdoe"])
        assert ignore_reason("tool", None, config) is None
