"""
FILE: tests/conftest.py
Shared fixtures for the travelsync test suite.
"""

from pathlib import Path

import pytest

from travelsync.api.routers.runtime import reset_runtime_for_tests
from tests.factories import Harness, build_harness

_RUNTIME_ENV_VARS = (
    "APP_PERSISTENCE_PROFILE",
    "TRAVELSYNC_STORE_BACKEND",
    "TRAVELSYNC_POSTGRES_DSN",
    "ERP_SIMULATOR_FAIL_OPERATIONS",
    "ERP_SIMULATOR_SEED",
    "PROPOSAL_SYNC_ON_PUBLIC_ACCEPT",
)


def _has_marker(item: pytest.Item, name: str) -> bool:
    return item.get_closest_marker(name) is not None


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if _has_marker(item, "unit") or _has_marker(item, "integration"):
            continue

        path = Path(str(item.fspath)).as_posix().lower()
        if "/tests/integration/" in path or "_integration.py" in path:
            item.add_marker(pytest.mark.integration)
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_runtime(monkeypatch: pytest.MonkeyPatch):
    for name in _RUNTIME_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_runtime_for_tests()
    yield
    reset_runtime_for_tests()


@pytest.fixture
def harness() -> Harness:
    return build_harness()


@pytest.fixture
def mapped_harness() -> Harness:
    mapped = build_harness()
    mapped.map_default_catalog()
    return mapped
