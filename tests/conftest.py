"""
Shared pytest fixtures and configuration for fbspine tests.

This module provides:
- An in-memory native engine (FakeNativeLibrary) per test
- Storage descriptors pointing at it
- An ``open_connection`` factory for async tests
- Settings cache isolation

Usage:
    @pytest.mark.asyncio
    async def test_something(open_connection, fake_library):
        async with await open_connection() as connection:
            ...
"""

import os
from pathlib import Path

import pytest

from fbspine.connection import Connection, FileStorage, NamedStorage
from fbspine.settings import get_settings
from fbspine.testing import FakeNativeLibrary


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location; skip live tests without a server."""
    live = os.environ.get("FRONTBASE_TEST_DATABASE")
    skip_live = pytest.mark.skip(reason="FRONTBASE_TEST_DATABASE not set")

    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if "integration" in markers:
            if not live:
                item.add_marker(skip_live)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read FRONTBASE_* settings in every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Native Engine Fixtures
# =============================================================================


@pytest.fixture
def fake_library() -> FakeNativeLibrary:
    return FakeNativeLibrary()


@pytest.fixture
def named_storage() -> NamedStorage:
    return NamedStorage("Universe", "localhost", "_system", password="secret")


@pytest.fixture
def file_storage(tmp_path) -> FileStorage:
    return FileStorage("Universe", str(tmp_path / "Universe.fb"), "_system")


@pytest.fixture
def open_connection(fake_library, named_storage):
    """Factory opening a Connection on the fake engine."""

    async def _open(**kwargs) -> Connection:
        kwargs.setdefault("library", fake_library)
        kwargs.setdefault("session_name", "tests")
        return await Connection.open(named_storage, **kwargs)

    return _open
