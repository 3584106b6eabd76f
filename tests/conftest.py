"""Shared pytest fixtures for the catalog tests."""

import pytest

from fluxstack.config import get_settings
from fluxstack.models import Tool
from fluxstack.moderation import ModerationService
from fluxstack.storage import LocalCatalogStore
from fluxstack.storage import get_store


def make_tool(**overrides) -> Tool:
    """Build a tool with sensible defaults for ranking tests."""
    fields = {
        "id": "tool-example",
        "name": "Example",
        "url": "https://example.com",
        "category": "Writing",
        "description": "An example tool",
        "tags": [],
        "votes": 0,
    }
    fields.update(overrides)
    return Tool(**fields)


@pytest.fixture
def catalog_file(tmp_path):
    return tmp_path / "catalog.json"


@pytest.fixture
def store(catalog_file):
    return LocalCatalogStore(catalog_file)


@pytest.fixture
def service(store):
    return ModerationService(store)


@pytest.fixture
def configured_env(monkeypatch, tmp_path, catalog_file):
    """Point settings at a temporary catalog and a known admin token."""
    monkeypatch.setenv("ADMIN_TOKEN", "test-admin-token")
    monkeypatch.setenv("FLUXSTACK_STORAGE_BACKEND", "local")
    monkeypatch.setenv("FLUXSTACK_DATA_FILE", str(catalog_file))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    get_settings.cache_clear()
    get_store.cache_clear()
    yield
    get_settings.cache_clear()
    get_store.cache_clear()
