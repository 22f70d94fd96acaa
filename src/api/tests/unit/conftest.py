"""Unit test fixtures with mocked dependencies."""

import pytest

from infrastructure.settings import (
    get_database_settings,
    get_provisioning_settings,
    get_routing_settings,
    get_settings,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings are cached per process; tests that patch env must not leak."""
    yield
    get_settings.cache_clear()
    get_database_settings.cache_clear()
    get_provisioning_settings.cache_clear()
    get_routing_settings.cache_clear()
