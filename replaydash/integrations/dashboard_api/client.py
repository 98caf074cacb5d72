"""
Dashboard backend API client.

This client handles:
- Health checks (AI availability, replay count)
- Dashboard listing, retrieval with variable bindings, and CRUD
- Widget CRUD
- Query variable extraction and query execution for previews

The backend answers errors with plain-text bodies (e.g. "only SELECT
queries are allowed"); those texts become exception messages verbatim.
"""

import logging
from typing import Optional, List, Dict, Any, Mapping

import httpx

from replaydash.config.preview_settings import get_preview_settings_loader
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
    parse_variables,
)

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_URL = "default"


class DashboardAPIClient:
    """
    Async client for the replay dashboard backend.

    All methods are async and should be used with async/await.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize dashboard API client.

        Args:
            base_url: Backend base URL (default: from preview settings)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        settings = get_preview_settings_loader()
        self.base_url = (base_url or settings.get_api_base_url()).rstrip("/")
        timeout = timeout if timeout is not None else settings.get_api_timeout_seconds()
        connect_timeout = (
            connect_timeout if connect_timeout is not None
            else settings.get_api_connect_timeout_seconds()
        )

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "DashboardAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an HTTP request to the dashboard backend.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            json: Request body as JSON
            params: Query parameters

        Returns:
            Decoded JSON body ({} for empty bodies)

        Raises:
            DashboardAPIError: On API errors
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = await self._client.request(
                method=method,
                url=url,
                json=json,
                params=params,
            )

            if response.status_code == 400:
                reason = response.text.strip() or "Bad request"
                logger.warning(
                    "Dashboard API rejected request",
                    extra={"status_code": 400, "endpoint": endpoint, "reason": reason[:500]},
                )
                raise DashboardAPIBadRequestError(message=reason, endpoint=endpoint)

            if response.status_code == 404:
                raise DashboardAPINotFoundError(
                    message=response.text.strip() or f"Resource not found: {endpoint}",
                    endpoint=endpoint,
                )

            if response.status_code >= 400:
                reason = response.text.strip()
                logger.error(
                    "Dashboard API error",
                    extra={
                        "status_code": response.status_code,
                        "endpoint": endpoint,
                        "response": reason[:500],
                    },
                )
                raise DashboardAPIError(
                    message=reason or f"Dashboard API error: {response.status_code}",
                    status_code=response.status_code,
                    endpoint=endpoint,
                )

            if response.status_code == 204 or not response.content:
                return {}

            try:
                return response.json()
            except ValueError as e:
                logger.error(
                    "Dashboard API returned invalid JSON",
                    extra={
                        "status_code": response.status_code,
                        "endpoint": endpoint,
                        "response": response.text[:500],
                    },
                )
                raise DashboardAPIError(
                    message=f"Invalid JSON response: {e}",
                    status_code=response.status_code,
                    endpoint=endpoint,
                )

        except httpx.TimeoutException as e:
            logger.error(
                "Dashboard API timeout",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise DashboardAPIConnectionError(f"Request timeout: {e}", endpoint=endpoint)
        except httpx.RequestError as e:
            logger.error(
                "Dashboard API connection error",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise DashboardAPIConnectionError(f"Connection error: {e}", endpoint=endpoint)

    async def check_health(self) -> HealthStatus:
        """
        Check backend health.

        Returns:
            HealthStatus with AI availability and replay count
        """
        data = await self._request("GET", "/api/health")
        return HealthStatus.from_dict(data or {})

    # ------------------------------------------------------------------
    # Dashboards
    # ------------------------------------------------------------------

    async def list_dashboards(self) -> List[DashboardSummary]:
        """List all dashboards."""
        data = await self._request("GET", "/api/dashboard")
        dashboards = [DashboardSummary.from_dict(d) for d in data or []]

        logger.debug(
            "Listed dashboards",
            extra={"dashboard_count": len(dashboards)},
        )
        return dashboards

    async def get_dashboard(
        self,
        url: str,
        bindings: Optional[Mapping[str, str]] = None,
    ) -> Dashboard:
        """
        Get a dashboard with widget results resolved for the given bindings.

        Args:
            url: Dashboard URL key
            bindings: Variable name -> value, sent as query parameters

        Returns:
            Dashboard with widgets, results and declared variables

        Raises:
            DashboardAPINotFoundError: If the dashboard does not exist
        """
        params = dict(bindings) if bindings else None
        data = await self._request("GET", f"/api/dashboard/{url}", params=params)
        return Dashboard.from_dict(data)

    async def create_dashboard(
        self,
        url: str,
        name: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a dashboard. Returns the backend's JSON answer."""
        payload: Dict[str, Any] = {"url": url, "name": name}
        if description:
            payload["description"] = description
        data = await self._request("PUT", "/api/dashboard", json=payload)

        logger.info("Dashboard created", extra={"dashboard_url": url})
        return data

    async def update_dashboard(self, url: str, fields: Dict[str, Any]) -> None:
        """Update dashboard fields (name, description, replays_filter_sql, url rename)."""
        await self._request("POST", f"/api/dashboard/{url}", json=fields)

    async def delete_dashboard(self, url: str) -> None:
        """
        Delete a dashboard.

        Raises:
            ValueError: When asked to delete the default dashboard
        """
        if url == DEFAULT_DASHBOARD_URL:
            raise ValueError("The default dashboard cannot be deleted")
        await self._request("DELETE", f"/api/dashboard/{url}")

        logger.info("Dashboard deleted", extra={"dashboard_url": url})

    # ------------------------------------------------------------------
    # Widgets
    # ------------------------------------------------------------------

    async def create_widget(self, dashboard_url: str, prompt: str = "") -> Widget:
        """
        Create a widget, optionally from a natural-language prompt.

        An empty prompt creates a blank widget for manual editing.
        """
        data = await self._request(
            "PUT",
            f"/api/dashboard/{dashboard_url}/widget",
            json={"Prompt": prompt},
        )
        widget = Widget.from_dict(data)

        logger.info(
            "Widget created",
            extra={"dashboard_url": dashboard_url, "widget_id": widget.id, "from_prompt": bool(prompt)},
        )
        return widget

    async def update_widget(
        self,
        dashboard_url: str,
        widget_id: int,
        fields: Dict[str, Any],
    ) -> None:
        """Update a widget with a partial set of fields."""
        await self._request(
            "POST",
            f"/api/dashboard/{dashboard_url}/widget/{widget_id}",
            json=fields,
        )

    async def delete_widget(self, dashboard_url: str, widget_id: int) -> None:
        """Delete a widget."""
        await self._request("DELETE", f"/api/dashboard/{dashboard_url}/widget/{widget_id}")

        logger.info(
            "Widget deleted",
            extra={"dashboard_url": dashboard_url, "widget_id": widget_id},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_query_variables(
        self,
        query: str,
        dashboard_url: Optional[str] = None,
    ) -> Dict[str, VariableDef]:
        """
        Ask the backend which variables a SQL template references.

        Args:
            query: SQL template text
            dashboard_url: Dashboard whose replay filter applies to value lookups

        Returns:
            Variable name -> VariableDef with possible values

        Raises:
            DashboardAPIError: On API errors or a malformed variables payload
        """
        data = await self._request(
            "POST",
            "/api/query/variables",
            json={"query": query, "dashboard_url": dashboard_url or ""},
        )
        if not isinstance(data, dict):
            raise DashboardAPIError(
                message=f"Invalid variables response: expected an object, got {type(data).__name__}",
                endpoint="/api/query/variables",
            )
        try:
            return parse_variables(data.get("variables"))
        except (TypeError, ValueError) as e:
            raise DashboardAPIError(
                message=f"Invalid variables response: {e}",
                endpoint="/api/query/variables",
            )

    async def execute_query(
        self,
        query: str,
        bindings: Optional[Mapping[str, str]] = None,
        dashboard_url: Optional[str] = None,
    ) -> QueryResult:
        """
        Execute a SQL template with variable bindings.

        Raises:
            DashboardAPIBadRequestError: Query rejected or failed in the backend
        """
        data = await self._request(
            "POST",
            "/api/query",
            json={
                "query": query,
                "variable_values": dict(bindings or {}),
                "dashboard_url": dashboard_url or "",
            },
        )
        return QueryResult.from_dict(data or {})


def get_dashboard_api_client(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> DashboardAPIClient:
    """
    Factory function to create a DashboardAPIClient.

    Args:
        base_url: Override API base URL
        timeout: Override request timeout

    Returns:
        Configured DashboardAPIClient instance
    """
    return DashboardAPIClient(base_url=base_url, timeout=timeout)
