"""
Debounced, race-safe preview execution.

Every trigger bumps a generation token. A dispatched request captures the
token current at dispatch time, and its response is applied only if that
token is still the latest when it resolves. Older responses are discarded
whatever order they arrive in; in-flight HTTP calls are left to finish.

State machine (per request):

    IDLE -> SCHEDULED -> EXECUTING -> SETTLED | SUPERSEDED | FAILED

SQL edits wait for the preview quiescence window (500 ms by default);
variable selections dispatch immediately. Blank SQL settles to an empty
result with no backend call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from replaydash.config.preview_settings import get_preview_settings_loader
from replaydash.integrations.dashboard_api.client import DashboardAPIClient
from replaydash.integrations.dashboard_api.exceptions import DashboardAPIError
from replaydash.services.exceptions import ExecutionError

logger = logging.getLogger(__name__)


class PreviewState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    EXECUTING = "executing"
    SETTLED = "settled"
    SUPERSEDED = "superseded"
    FAILED = "failed"


@dataclass
class PreviewResult:
    """Rows of the latest authoritative preview, or the error it failed with."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class PreviewRequest:
    """One dispatched execution."""

    generation: int
    query: str
    bindings: Dict[str, str]
    state: PreviewState = PreviewState.EXECUTING


ResultCallback = Callable[[PreviewResult], None]


class PreviewScheduler:
    """
    Owns the preview lifecycle for one editing session.

    Must be driven from a single event loop. Triggers are synchronous and
    return immediately; use wait_until_idle() to await the outcome.
    """

    def __init__(
        self,
        client: DashboardAPIClient,
        dashboard_url: Optional[str] = None,
        quiescence_seconds: Optional[float] = None,
        on_result: Optional[ResultCallback] = None,
    ):
        self.client = client
        self.dashboard_url = dashboard_url
        if quiescence_seconds is None:
            quiescence_seconds = get_preview_settings_loader().get_preview_quiescence_seconds()
        self.quiescence_seconds = quiescence_seconds
        self.on_result = on_result

        self.state = PreviewState.IDLE
        self.result = PreviewResult()
        self.query = ""
        self.bindings: Dict[str, str] = {}
        self.last_executed_query = ""
        self.last_request: Optional[PreviewRequest] = None

        self.dispatched_count = 0
        self.superseded_count = 0

        self._generation = 0
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Dict[asyncio.Task, PreviewRequest] = {}

    def trigger_query_change(
        self,
        sql_text: str,
        bindings: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Schedule execution of new SQL text after the quiescence window."""
        self.query = sql_text
        if bindings is not None:
            self.bindings = dict(bindings)
        self._trigger(self.quiescence_seconds)

    def trigger_variable_change(self, bindings: Mapping[str, str]) -> None:
        """Execute the current SQL with new bindings without waiting."""
        self.bindings = dict(bindings)
        self._trigger(0)

    def _trigger(self, delay: float) -> None:
        self._generation += 1
        generation = self._generation
        self._cancel_timer()
        self._supersede_inflight()

        if not self.query.strip():
            self._apply(PreviewResult(), PreviewState.SETTLED)
            logger.debug(
                "preview_scheduler.blank_query_settled",
                extra={"generation": generation},
            )
            return

        self.state = PreviewState.SCHEDULED
        self._timer = asyncio.get_running_loop().create_task(
            self._wait_and_dispatch(generation, delay)
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _supersede_inflight(self) -> None:
        for request in self._inflight.values():
            if request.state == PreviewState.EXECUTING:
                request.state = PreviewState.SUPERSEDED
                self.superseded_count += 1
                logger.debug(
                    "preview_scheduler.superseded",
                    extra={"generation": request.generation, "latest_generation": self._generation},
                )

    async def _wait_and_dispatch(self, generation: int, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        else:
            # Yield once so triggers issued in the same tick coalesce.
            await asyncio.sleep(0)

        if generation != self._generation:
            return

        self._timer = None
        request = PreviewRequest(
            generation=generation,
            query=self.query,
            bindings=dict(self.bindings),
        )
        task = asyncio.get_running_loop().create_task(self._execute(request))
        self._inflight[task] = request
        task.add_done_callback(lambda t: self._inflight.pop(t, None))

    async def _execute(self, request: PreviewRequest) -> None:
        if request.state == PreviewState.SUPERSEDED:
            return

        self.state = PreviewState.EXECUTING
        self.last_request = request
        self.dispatched_count += 1

        logger.debug(
            "preview_scheduler.dispatched",
            extra={
                "generation": request.generation,
                "dashboard_url": self.dashboard_url,
                "variables": sorted(request.bindings),
            },
        )

        outcome: Optional[PreviewResult] = None
        error: Optional[ExecutionError] = None
        try:
            response = await self.client.execute_query(
                request.query,
                request.bindings,
                self.dashboard_url,
            )
            outcome = PreviewResult(rows=response.results, columns=response.columns)
        except DashboardAPIError as e:
            error = ExecutionError(e.message, details={"status_code": e.status_code})
        except Exception as e:
            logger.exception(
                "preview_scheduler.unexpected_error",
                extra={"generation": request.generation},
            )
            error = ExecutionError(str(e) or e.__class__.__name__)

        if request.generation != self._generation:
            request.state = PreviewState.SUPERSEDED
            logger.debug(
                "preview_scheduler.stale_response_discarded",
                extra={"generation": request.generation, "latest_generation": self._generation},
            )
            return

        if error is not None:
            request.state = PreviewState.FAILED
            logger.warning(
                "preview_scheduler.failed",
                extra={
                    "generation": request.generation,
                    "dashboard_url": self.dashboard_url,
                    "error": error.message,
                },
            )
            self._apply(PreviewResult(error=error.message), PreviewState.FAILED)
            return

        request.state = PreviewState.SETTLED
        self.last_executed_query = request.query
        self._apply(outcome, PreviewState.SETTLED)

        logger.debug(
            "preview_scheduler.settled",
            extra={"generation": request.generation, "row_count": len(outcome.rows)},
        )

    def _apply(self, result: PreviewResult, state: PreviewState) -> None:
        self.result = result
        self.state = state
        if self.on_result is not None:
            self.on_result(result)

    def _pending_tasks(self) -> Set[asyncio.Task]:
        tasks = {t for t in self._inflight if not t.done()}
        if self._timer is not None and not self._timer.done():
            tasks.add(self._timer)
        return tasks

    async def wait_until_idle(self) -> None:
        """Wait until no execution is scheduled or in flight."""
        while True:
            tasks = self._pending_tasks()
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel the pending timer and any in-flight executions."""
        self._generation += 1
        tasks = self._pending_tasks()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timer = None
        self._inflight.clear()
