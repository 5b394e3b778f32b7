import pytest

from aisdk import capabilities


@pytest.fixture(autouse=True)
def isolated_capability_index(monkeypatch):
    """Keep a developer's cached capability index out of adapter tests."""
    monkeypatch.delenv(capabilities.ENV_INDEX_JSON, raising=False)
    monkeypatch.delenv(capabilities.ENV_INDEX_PATH, raising=False)
    monkeypatch.setenv(capabilities.ENV_DISABLE_DISK, "1")
    capabilities.clear_cache()
    yield
    capabilities.clear_cache()
