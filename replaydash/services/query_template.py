"""
Variable extraction for SQL templates.

The backend parses the template and answers with the variables it
references plus their selectable values. Extraction runs after the SQL
text has been stable for a quiescence window; responses for text that has
since changed are discarded.

Extraction never blocks or gates a preview. A failed extraction is logged
and the previously known variables stay in place.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from replaydash.config.preview_settings import get_preview_settings_loader
from replaydash.integrations.dashboard_api.client import DashboardAPIClient
from replaydash.integrations.dashboard_api.exceptions import DashboardAPIError
from replaydash.integrations.dashboard_api.models import VariableDef
from replaydash.services.exceptions import ExtractionError

logger = logging.getLogger(__name__)

VariablesCallback = Callable[[Dict[str, VariableDef]], None]


class QueryTemplate:
    """
    Tracks the variables referenced by the SQL text being edited.

    Call schedule() on every edit; the latest accepted mapping is available
    as .variables and is pushed to on_variables.
    """

    def __init__(
        self,
        client: DashboardAPIClient,
        dashboard_url: Optional[str] = None,
        quiescence_seconds: Optional[float] = None,
        on_variables: Optional[VariablesCallback] = None,
    ):
        self.client = client
        self.dashboard_url = dashboard_url
        if quiescence_seconds is None:
            quiescence_seconds = (
                get_preview_settings_loader().get_variable_extraction_quiescence_seconds()
            )
        self.quiescence_seconds = quiescence_seconds
        self.on_variables = on_variables

        self.variables: Dict[str, VariableDef] = {}
        self.last_error: Optional[ExtractionError] = None

        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    async def extract_variables(
        self,
        sql_text: str,
        dashboard_url: Optional[str] = None,
    ) -> Dict[str, VariableDef]:
        """
        Ask the backend which variables a SQL template references.

        Blank text short-circuits to an empty mapping without a backend call.

        Raises:
            ExtractionError: If the backend call fails
        """
        if not sql_text or not sql_text.strip():
            return {}

        url = dashboard_url if dashboard_url is not None else self.dashboard_url
        try:
            return await self.client.get_query_variables(sql_text, url)
        except DashboardAPIError as e:
            raise ExtractionError(
                f"Variable extraction failed: {e.message}",
                details={"status_code": e.status_code, "dashboard_url": url},
            ) from e

    def schedule(self, sql_text: str) -> None:
        """
        Restart the quiescence window for new SQL text.

        Must be called from within a running event loop.
        """
        self._generation += 1
        generation = self._generation

        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._task = asyncio.get_running_loop().create_task(
            self._run(generation, sql_text)
        )

    async def _run(self, generation: int, sql_text: str) -> None:
        await asyncio.sleep(self.quiescence_seconds)

        error: Optional[ExtractionError] = None
        try:
            variables = await self.extract_variables(sql_text)
        except ExtractionError as e:
            error = e
        except Exception as e:
            logger.exception(
                "query_template.unexpected_error",
                extra={"generation": generation},
            )
            error = ExtractionError(f"Variable extraction failed: {e}")

        if error is not None:
            if generation != self._generation:
                return
            self.last_error = error
            logger.warning(
                "query_template.extraction_failed",
                extra={
                    "dashboard_url": self.dashboard_url,
                    "error": error.message,
                    "kept_variables": sorted(self.variables),
                },
            )
            return

        if generation != self._generation:
            logger.debug(
                "query_template.stale_response_discarded",
                extra={"generation": generation, "latest_generation": self._generation},
            )
            return

        self.variables = variables
        self.last_error = None

        logger.debug(
            "query_template.variables_extracted",
            extra={"dashboard_url": self.dashboard_url, "variables": sorted(variables)},
        )

        if self.on_variables is not None:
            self.on_variables(dict(variables))

    async def wait_until_idle(self) -> None:
        """Wait for the pending extraction, if any, to finish."""
        while self._task is not None and not self._task.done():
            task = self._task
            await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        """Cancel any pending extraction."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
