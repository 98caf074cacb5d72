"""
Replay dashboard backend integration.

This module provides an async client for the dashboard backend's HTTP API:
dashboards, widgets, query variable extraction and query execution.
"""

from replaydash.integrations.dashboard_api.client import (
    DashboardAPIClient,
    get_dashboard_api_client,
    DEFAULT_DASHBOARD_URL,
)
from replaydash.integrations.dashboard_api.exceptions import (
    DashboardAPIError,
    DashboardAPIBadRequestError,
    DashboardAPINotFoundError,
    DashboardAPIConnectionError,
)
from replaydash.integrations.dashboard_api.models import (
    Dashboard,
    DashboardSummary,
    HealthStatus,
    QueryResult,
    VariableDef,
    Widget,
)

__all__ = [
    # Client
    "DashboardAPIClient",
    "get_dashboard_api_client",
    "DEFAULT_DASHBOARD_URL",
    # Exceptions
    "DashboardAPIError",
    "DashboardAPIBadRequestError",
    "DashboardAPINotFoundError",
    "DashboardAPIConnectionError",
    # Models
    "Dashboard",
    "DashboardSummary",
    "HealthStatus",
    "QueryResult",
    "VariableDef",
    "Widget",
]
