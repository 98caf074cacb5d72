"""
Widget editing session.

Wires one widget being edited to the preview engine:

- SQL edits restart both the variable extraction window (300 ms) and the
  preview window (500 ms)
- variables reported by extraction are reconciled into the editor's
  bindings; a changed binding set restarts the preview window, so the
  preview still carries the final SQL text
- a variable selection re-runs the preview immediately
- the chart config is validated and rendered against the latest preview

Bindings live in their own VariableStore scope so experimenting in the
editor never changes the dashboard's selections.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from replaydash.charts.registry import (
    ConfigValidationResult,
    default_config,
    validate,
)
from replaydash.charts.renderer import RenderedChart, render
from replaydash.integrations.dashboard_api.client import DashboardAPIClient
from replaydash.integrations.dashboard_api.models import VariableDef, Widget
from replaydash.services.preview_scheduler import (
    PreviewResult,
    PreviewScheduler,
    PreviewState,
)
from replaydash.services.query_template import QueryTemplate
from replaydash.services.variable_store import VariableBindings, VariableStore

logger = logging.getLogger(__name__)


def editor_scope_key(dashboard_url: str, widget_id: Optional[int]) -> str:
    """VariableStore scope for an editor session."""
    return f"editor_{dashboard_url}_{widget_id if widget_id is not None else 'new'}"


class WidgetEditSession:
    """Editing state for a single widget."""

    def __init__(
        self,
        client: DashboardAPIClient,
        dashboard_url: str,
        widget: Optional[Widget] = None,
        variable_store: Optional[VariableStore] = None,
        initial_bindings: Optional[Mapping[str, str]] = None,
        extraction_quiescence_seconds: Optional[float] = None,
        preview_quiescence_seconds: Optional[float] = None,
        on_result: Optional[Callable[[PreviewResult], None]] = None,
    ):
        self.client = client
        self.dashboard_url = dashboard_url
        self.widget_id = widget.id if widget is not None else None

        self.name = widget.name if widget is not None else ""
        self.description = widget.description if widget is not None else None
        self.query = widget.query if widget is not None else ""
        self.config: Dict[str, Any] = (
            dict(widget.config) if widget is not None and widget.config else default_config()
        )
        self.variables: Dict[str, VariableDef] = {}

        self.variable_store = variable_store or VariableStore()
        self.scope_key = editor_scope_key(dashboard_url, self.widget_id)
        self.variable_store.set(self.scope_key, initial_bindings or {})

        self._on_result = on_result
        self.template = QueryTemplate(
            client,
            dashboard_url=dashboard_url,
            quiescence_seconds=extraction_quiescence_seconds,
            on_variables=self._handle_variables,
        )
        self.scheduler = PreviewScheduler(
            client,
            dashboard_url=dashboard_url,
            quiescence_seconds=preview_quiescence_seconds,
            on_result=on_result,
        )
        self.scheduler.query = self.query
        self.scheduler.bindings = self.bindings

        # Show the rows the dashboard already has until the first preview lands
        if widget is not None and widget.results:
            self.scheduler.result = PreviewResult(
                rows=list(widget.results),
                columns=list(widget.columns),
            )

    @property
    def bindings(self) -> VariableBindings:
        return self.variable_store.get(self.scope_key)

    @property
    def result(self) -> PreviewResult:
        return self.scheduler.result

    @property
    def state(self) -> PreviewState:
        return self.scheduler.state

    def start(self) -> None:
        """Kick off extraction and preview for the widget's current SQL."""
        self.set_query(self.query)

    def set_query(self, sql_text: str) -> None:
        self.query = sql_text
        self.template.schedule(sql_text)
        self.scheduler.trigger_query_change(sql_text, self.bindings)

    def set_variable(self, name: str, value: str) -> None:
        bindings = self.variable_store.set_value(self.scope_key, name, value)
        self.scheduler.trigger_variable_change(bindings)

    def _handle_variables(self, variables: Dict[str, VariableDef]) -> None:
        self.variables = variables
        current = self.bindings
        reconciled = self.variable_store.reconcile(self.scope_key, current, variables)

        if reconciled != current and self.query.strip():
            logger.debug(
                "widget_editor.bindings_reconciled",
                extra={"widget_id": self.widget_id, "variables": sorted(reconciled)},
            )
            self.scheduler.trigger_query_change(self.query, reconciled)
        else:
            self.scheduler.bindings = reconciled

    # ------------------------------------------------------------------
    # Chart config
    # ------------------------------------------------------------------

    def set_chart_type(self, chart_type: str) -> None:
        """Switch chart type. Fields of other types are kept for switching back."""
        self.config = {**self.config, "type": chart_type}

    def update_config(self, field: str, value: Any) -> None:
        self.config = {**self.config, field: value}

    def validate_config(self) -> ConfigValidationResult:
        return validate(self.config)

    def render(self) -> RenderedChart:
        """Render the latest preview with the current config."""
        return render(self.config, self.scheduler.result)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_update_fields(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description or None,
            "query": self.query,
            "config": dict(self.config),
        }

    async def save(self) -> int:
        """
        Save the widget to the dashboard, creating it first if it is new.

        Returns:
            The widget id
        """
        if self.widget_id is None:
            created = await self.client.create_widget(self.dashboard_url, "")
            self.widget_id = created.id

        await self.client.update_widget(
            self.dashboard_url,
            self.widget_id,
            self.to_update_fields(),
        )

        logger.info(
            "Widget saved",
            extra={
                "dashboard_url": self.dashboard_url,
                "widget_id": self.widget_id,
                "chart_type": self.config.get("type"),
            },
        )
        return self.widget_id

    async def wait_until_idle(self) -> None:
        """Wait for pending extraction and preview work to finish."""
        await self.template.wait_until_idle()
        await self.scheduler.wait_until_idle()

    async def close(self) -> None:
        await self.template.close()
        await self.scheduler.close()
