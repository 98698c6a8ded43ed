"""Pytest configuration and fixtures."""

from datetime import UTC, datetime, timedelta
from typing import Any, Callable

import pytest

from package_health.cache import PackageCache
from package_health.models import PackageMetadata
from package_health.registry.base import RegistryError

NOW = datetime(2026, 1, 1, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRegistry:
    """In-memory metadata fetcher recording every fetch.

    Packages missing from ``packages`` raise RegistryError like a 404.
    """

    def __init__(self, packages: dict[str, PackageMetadata]) -> None:
        self.packages = packages
        self.calls: list[str] = []

    async def __call__(self, name: str) -> PackageMetadata:
        self.calls.append(name)
        if name not in self.packages:
            raise RegistryError(f"Package not found: {name}", name, 404)
        return self.packages[name]


def make_metadata(
    name: str,
    version: str = "1.0.0",
    dependencies: dict[str, str] | None = None,
    license: str | None = "MIT",
    age_days: int | None = 30,
    **kwargs: Any,
) -> PackageMetadata:
    """Build PackageMetadata with a single published version."""
    deps = dependencies or {}
    time = {}
    if age_days is not None:
        time = {"modified": NOW - timedelta(days=age_days)}
    kwargs.setdefault("versions", {version: deps})
    return PackageMetadata(
        name=name,
        version=version,
        license=license,
        dependencies=deps,
        time=time,
        **kwargs,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    """Return a clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def cache(fake_clock: FakeClock) -> PackageCache:
    """Return an enabled cache driven by the fake clock."""
    return PackageCache(ttl=60.0, clock=fake_clock)


@pytest.fixture
def metadata_factory() -> Callable[..., PackageMetadata]:
    """Return the make_metadata factory."""
    return make_metadata


@pytest.fixture
def now() -> datetime:
    """Return the fixed reference time used by age analysis tests."""
    return NOW


@pytest.fixture
def registry_factory() -> Callable[..., FakeRegistry]:
    """Return a factory building a FakeRegistry from metadata records."""

    def factory(*records: PackageMetadata) -> FakeRegistry:
        return FakeRegistry({record.name: record for record in records})

    return factory
