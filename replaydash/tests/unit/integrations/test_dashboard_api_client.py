"""
Unit tests for the dashboard backend API client.

Tests cover:
- Client initialization from settings and explicit parameters
- Dashboard retrieval with variable bindings as query parameters
- Query variable extraction and query execution payloads
- Wire format parsing (nullable wrappers, widget order, column fallback)
- Error handling for 400 / 404 / 5xx, timeouts and connection errors
"""

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

import httpx

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
    QueryResult,
    VariableDef,
    Widget,
)


@pytest.fixture
def client():
    """Create a test client instance."""
    return DashboardAPIClient(base_url="http://dash.test")


def _response(status_code: int = 200, json_data=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.text = text
    response.content = b"{}" if json_data is not None else text.encode()
    return response


class TestDashboardAPIClientInitialization:
    """Tests for client initialization."""

    def test_init_uses_settings_default(self):
        """Client should default to the configured backend URL."""
        client = DashboardAPIClient()
        assert client.base_url == "http://localhost:8000"

    def test_init_with_env_override(self, monkeypatch):
        """REPLAYDASH_API_URL should override the YAML value."""
        monkeypatch.setenv("REPLAYDASH_API_URL", "http://replays.internal:9000/")
        client = DashboardAPIClient()
        assert client.base_url == "http://replays.internal:9000"

    def test_init_strips_trailing_slash(self):
        """Base URL should not have trailing slash."""
        client = DashboardAPIClient(base_url="http://dash.test/")
        assert client.base_url == "http://dash.test"

    def test_factory_function(self):
        """get_dashboard_api_client should pass overrides through."""
        client = get_dashboard_api_client(base_url="http://other.test")
        assert isinstance(client, DashboardAPIClient)
        assert client.base_url == "http://other.test"


class TestDashboardAPIClientDashboards:
    """Tests for dashboard endpoints."""

    @pytest.mark.asyncio
    async def test_get_dashboard_sends_bindings_as_params(self, client):
        """Bindings should be sent as query parameters."""
        mock_response = _response(json_data={
            "url": "default",
            "name": "Default",
            "description": {"valid": True, "string": "Overview"},
            "variables": {
                "map": {
                    "name": "map",
                    "display_name": "Map",
                    "possible_values": ["Hunters", "Lost Temple"],
                },
            },
            "widgets": [
                {"id": 2, "name": "Second", "query": "SELECT 2", "widget_order": {"valid": True, "int64": 2}},
                {"id": 1, "name": "First", "query": "SELECT 1", "widget_order": {"valid": True, "int64": 1}},
            ],
        })

        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = mock_response

            dashboard = await client.get_dashboard("default", {"map": "Hunters"})

            call = mock_request.call_args
            assert call.kwargs["method"] == "GET"
            assert call.kwargs["url"] == "http://dash.test/api/dashboard/default"
            assert call.kwargs["params"] == {"map": "Hunters"}

        assert isinstance(dashboard, Dashboard)
        assert dashboard.description == "Overview"
        assert dashboard.variables["map"].default_value == "Hunters"
        assert [w.id for w in dashboard.sorted_widgets] == [1, 2]

    @pytest.mark.asyncio
    async def test_get_dashboard_without_bindings_sends_no_params(self, client):
        """Empty bindings should not add query parameters."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={"url": "default", "name": "Default"})

            await client.get_dashboard("default", {})

            assert mock_request.call_args.kwargs["params"] is None

    @pytest.mark.asyncio
    async def test_get_dashboard_not_found(self, client):
        """Should raise DashboardAPINotFoundError on 404."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(404, text="dashboard not found")

            with pytest.raises(DashboardAPINotFoundError) as exc_info:
                await client.get_dashboard("missing")

            assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_list_dashboards(self, client):
        """Should parse the dashboard list."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data=[
                {"url": "default", "name": "Default", "description": {"valid": False, "string": ""}},
                {"url": "ladder", "name": "Ladder"},
            ])

            dashboards = await client.list_dashboards()

        assert [d.url for d in dashboards] == ["default", "ladder"]
        assert dashboards[0].description is None

    @pytest.mark.asyncio
    async def test_delete_default_dashboard_refused(self, client):
        """The default dashboard must never be deleted."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            with pytest.raises(ValueError):
                await client.delete_dashboard(DEFAULT_DASHBOARD_URL)

            mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_dashboard_empty_body(self, client):
        """An empty success body should not be decoded."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(204)

            await client.delete_dashboard("ladder")

            assert mock_request.call_args.kwargs["method"] == "DELETE"


class TestDashboardAPIClientWidgets:
    """Tests for widget endpoints."""

    @pytest.mark.asyncio
    async def test_create_widget_sends_prompt(self, client):
        """Prompt should be sent under the backend's Prompt key."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={
                "id": 7,
                "name": "Win rate",
                "query": "",
                "config": {"type": "table"},
            })

            widget = await client.create_widget("default", "win rate by map")

            assert mock_request.call_args.kwargs["json"] == {"Prompt": "win rate by map"}
            assert mock_request.call_args.kwargs["method"] == "PUT"

        assert isinstance(widget, Widget)
        assert widget.id == 7
        assert widget.order == 0

    @pytest.mark.asyncio
    async def test_update_widget(self, client):
        """Should POST partial fields to the widget endpoint."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={})

            await client.update_widget("default", 3, {"name": "Renamed"})

            call = mock_request.call_args
            assert call.kwargs["url"] == "http://dash.test/api/dashboard/default/widget/3"
            assert call.kwargs["json"] == {"name": "Renamed"}


class TestDashboardAPIClientQueries:
    """Tests for query endpoints."""

    @pytest.mark.asyncio
    async def test_get_query_variables(self, client):
        """Should parse variables and stringify possible values."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={
                "variables": {
                    "season": {"name": "season", "display_name": "Season", "possible_values": [3, 2, 1]},
                },
            })

            variables = await client.get_query_variables("SELECT {{season}}", "default")

            assert mock_request.call_args.kwargs["json"] == {
                "query": "SELECT {{season}}",
                "dashboard_url": "default",
            }

        assert isinstance(variables["season"], VariableDef)
        assert variables["season"].possible_values == ["3", "2", "1"]
        assert variables["season"].default_value == "3"

    @pytest.mark.asyncio
    async def test_execute_query(self, client):
        """Should send bindings as variable_values and parse rows."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={
                "results": [{"map": "Hunters", "wins": 12}],
                "columns": ["map", "wins"],
            })

            result = await client.execute_query("SELECT ...", {"map": "Hunters"}, "default")

            assert mock_request.call_args.kwargs["json"] == {
                "query": "SELECT ...",
                "variable_values": {"map": "Hunters"},
                "dashboard_url": "default",
            }

        assert isinstance(result, QueryResult)
        assert result.columns == ["map", "wins"]
        assert result.results[0]["wins"] == 12

    def test_query_result_columns_fall_back_to_first_row(self):
        """Missing columns should come from the first row's keys."""
        result = QueryResult.from_dict({"results": [{"a": 1, "b": 2}]})
        assert result.columns == ["a", "b"]

    @pytest.mark.asyncio
    async def test_execute_query_bad_request_keeps_backend_text(self, client):
        """400 bodies are plain text and become the error message."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(400, text="only SELECT queries are allowed\n")

            with pytest.raises(DashboardAPIBadRequestError) as exc_info:
                await client.execute_query("DROP TABLE replays")

        assert exc_info.value.message == "only SELECT queries are allowed"
        assert exc_info.value.status_code == 400


class TestDashboardAPIClientErrors:
    """Tests for transport and server error mapping."""

    @pytest.mark.asyncio
    async def test_server_error(self, client):
        """Should raise DashboardAPIError on 500."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(500, text="internal error")

            with pytest.raises(DashboardAPIError) as exc_info:
                await client.check_health()

        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, DashboardAPIBadRequestError)

    @pytest.mark.asyncio
    async def test_timeout_error(self, client):
        """Should raise DashboardAPIConnectionError on timeout."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = httpx.TimeoutException("timed out")

            with pytest.raises(DashboardAPIConnectionError, match="timeout"):
                await client.check_health()

    @pytest.mark.asyncio
    async def test_connection_error(self, client):
        """Should raise DashboardAPIConnectionError on connection failure."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = httpx.ConnectError("refused")

            with pytest.raises(DashboardAPIConnectionError, match="Connection error"):
                await client.list_dashboards()

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, client):
        """A 2xx body that is not JSON should raise DashboardAPIError."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            response = _response(200, text="<html>oops</html>")
            response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
            mock_request.return_value = response

            with pytest.raises(DashboardAPIError, match="Invalid JSON response") as exc_info:
                await client.get_query_variables("SELECT {{map}}")

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_malformed_variables_payload(self, client):
        """Variables that are not a mapping of objects should raise DashboardAPIError."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={"variables": ["map", "race"]})

            with pytest.raises(DashboardAPIError, match="Invalid variables response"):
                await client.get_query_variables("SELECT {{map}}")

    @pytest.mark.asyncio
    async def test_health(self, client):
        """Should parse health response."""
        with patch.object(client._client, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(json_data={
                "ok": True,
                "openai_enabled": True,
                "total_replays": 1532,
            })

            health = await client.check_health()

        assert health.ok is True
        assert health.openai_enabled is True
        assert health.total_replays == 1532

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self):
        """Exiting the context should close the HTTP client."""
        client = DashboardAPIClient(base_url="http://dash.test")
        async with client:
            pass
        assert client._client.is_closed
