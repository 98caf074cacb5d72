"""
Dashboard viewing session.

Keeps the current dashboard, its variable bindings and the backend's
capabilities together. Bindings are persisted per dashboard URL and
restored on load; declared variables without a binding start on their
first possible value, after which the dashboard is fetched again so every
widget reflects the full binding set.
"""

import logging
from typing import Any, Dict, List, Optional

from replaydash.integrations.dashboard_api.client import (
    DEFAULT_DASHBOARD_URL,
    DashboardAPIClient,
)
from replaydash.integrations.dashboard_api.exceptions import DashboardAPIError
from replaydash.integrations.dashboard_api.models import (
    Dashboard,
    DashboardSummary,
    HealthStatus,
    Widget,
)
from replaydash.services.variable_store import VariableBindings, VariableStore
from replaydash.services.widget_editor import WidgetEditSession

logger = logging.getLogger(__name__)


class DashboardSession:
    """The dashboard a user is looking at and its variable selections."""

    def __init__(
        self,
        client: DashboardAPIClient,
        variable_store: Optional[VariableStore] = None,
    ):
        self.client = client
        self.variable_store = variable_store or VariableStore()

        self.url = DEFAULT_DASHBOARD_URL
        self.dashboard: Optional[Dashboard] = None
        self.bindings: VariableBindings = {}
        self.dashboards: List[DashboardSummary] = []
        self.openai_enabled = False

    @property
    def widgets(self) -> List[Widget]:
        """Widgets of the current dashboard in display order."""
        if self.dashboard is None:
            return []
        return self.dashboard.sorted_widgets

    async def check_health(self) -> Optional[HealthStatus]:
        """Refresh backend capabilities. An unreachable backend disables AI prompts."""
        try:
            health = await self.client.check_health()
        except DashboardAPIError as e:
            logger.warning("dashboard_session.health_check_failed", extra={"error": e.message})
            self.openai_enabled = False
            return None

        self.openai_enabled = health.openai_enabled
        return health

    async def refresh_dashboards(self) -> List[DashboardSummary]:
        self.dashboards = await self.client.list_dashboards()
        return self.dashboards

    async def load(self, url: Optional[str] = None) -> Dashboard:
        """
        Load a dashboard with its persisted bindings.

        Raises:
            DashboardAPIError: If the backend call fails
        """
        url = url or self.url
        stored = self.variable_store.get(url)

        dashboard = await self.client.get_dashboard(url, stored)
        reconciled = self.variable_store.reconcile(url, stored, dashboard.variables)

        if reconciled != stored:
            logger.debug(
                "dashboard_session.reloading_with_defaults",
                extra={"dashboard_url": url, "variables": sorted(reconciled)},
            )
            dashboard = await self.client.get_dashboard(url, reconciled)

        self.url = url
        self.dashboard = dashboard
        self.bindings = reconciled
        return dashboard

    async def switch_dashboard(self, url: str) -> Dashboard:
        """Show another dashboard. The previous dashboard's bindings never carry over."""
        self.bindings = {}
        self.dashboard = None
        return await self.load(url)

    async def set_variable(self, name: str, value: str) -> Dashboard:
        """Select a variable value and refetch the dashboard with it."""
        bindings = {**self.bindings, name: value}
        self.variable_store.set(self.url, bindings)
        self.bindings = bindings

        self.dashboard = await self.client.get_dashboard(self.url, bindings)
        return self.dashboard

    # ------------------------------------------------------------------
    # Dashboard and widget management
    # ------------------------------------------------------------------

    async def create_dashboard(
        self,
        url: str,
        name: str,
        description: Optional[str] = None,
    ) -> Dashboard:
        await self.client.create_dashboard(url, name, description)
        await self.refresh_dashboards()
        return await self.switch_dashboard(url)

    async def update_dashboard(self, fields: Dict[str, Any]) -> Dashboard:
        """Update the current dashboard; follows a url rename."""
        await self.client.update_dashboard(self.url, fields)

        new_url = fields.get("url")
        if new_url and new_url != self.url:
            self.variable_store.set(new_url, self.bindings)
            self.variable_store.clear(self.url)
            self.url = new_url

        await self.refresh_dashboards()
        return await self.load(self.url)

    async def delete_dashboard(self, url: str) -> None:
        """
        Delete a dashboard and forget its bindings.

        Raises:
            ValueError: For the default dashboard
        """
        await self.client.delete_dashboard(url)
        self.variable_store.clear(url)
        await self.refresh_dashboards()

        if url == self.url:
            await self.switch_dashboard(DEFAULT_DASHBOARD_URL)

    async def create_widget(self, prompt: str = "") -> Widget:
        """
        Create a widget from a prompt, or a blank one to edit by hand.

        Raises:
            ValueError: For a prompt when the backend has no AI configured
        """
        if prompt.strip() and not self.openai_enabled:
            raise ValueError("AI widget creation requires the backend to have an OpenAI API key")

        widget = await self.client.create_widget(self.url, prompt.strip())
        await self.load()
        return widget

    async def update_widget(self, widget_id: int, fields: Dict[str, Any]) -> Dashboard:
        # A prompt regenerates the widget; other fields are ignored then
        if fields.get("prompt"):
            fields = {"prompt": fields["prompt"]}
        await self.client.update_widget(self.url, widget_id, fields)
        return await self.load()

    async def delete_widget(self, widget_id: int) -> Dashboard:
        await self.client.delete_widget(self.url, widget_id)
        return await self.load()

    def edit_widget(self, widget: Optional[Widget] = None, **kwargs) -> WidgetEditSession:
        """Open an editor on a widget (or a new one) seeded with the current bindings."""
        return WidgetEditSession(
            self.client,
            self.url,
            widget=widget,
            variable_store=self.variable_store,
            initial_bindings=self.bindings,
            **kwargs,
        )
