"""
Root test configuration and fixtures.

- Preview settings singleton is reset around every test
- REPLAYDASH_* environment overrides are cleared so tests see the YAML/defaults
- mock_client: DashboardAPIClient double whose async methods are AsyncMocks
"""

import pytest
from unittest.mock import MagicMock

from replaydash.config.preview_settings import reset_preview_settings_loader
from replaydash.integrations.dashboard_api.client import DashboardAPIClient
from replaydash.integrations.dashboard_api.models import QueryResult


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Isolate every test from ambient settings."""
    for var in (
        "REPLAYDASH_API_URL",
        "REPLAYDASH_API_TIMEOUT_SECONDS",
        "REPLAYDASH_STATE_DATABASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_preview_settings_loader()
    yield
    reset_preview_settings_loader()


@pytest.fixture
def mock_client():
    """API client double; async methods are AsyncMocks via spec."""
    client = MagicMock(spec=DashboardAPIClient)
    client.execute_query.return_value = QueryResult(results=[], columns=[])
    client.get_query_variables.return_value = {}
    return client
