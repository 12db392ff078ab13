"""Shared fixtures for riftcall tests."""

import pytest

from riftcall.core.config import Settings
from riftcall.services.extensions import reset_extension_registry

from stubs import StubTransport


@pytest.fixture
def make_settings(tmp_path):
    """Build isolated Settings that ignore the environment's .env file."""

    def _make(**overrides) -> Settings:
        values = {
            "api_key": "RGAPI-test-key",
            "region": "euw",
            "cache_provider": "memory",
            "cache_dir": tmp_path / "cache",
            "fixtures_dir": tmp_path / "fixtures",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def stub_transport():
    return StubTransport()


@pytest.fixture(autouse=True)
def reset_extensions():
    """Reset the global extension registry before and after each test."""
    reset_extension_registry()
    yield
    reset_extension_registry()
