#!/usr/bin/env python3
"""
Command-line access to the replay dashboard backend.

Usage:
    python -m replaydash.cli health
    python -m replaydash.cli dashboards
    python -m replaydash.cli variables --query "SELECT ... WHERE map = {{map}}"
    python -m replaydash.cli preview --query "SELECT ..." --type bar_chart \\
        --config bar_label_column=map --config bar_value_column=wins \\
        --set map="Lost Temple" --persist

Prerequisites:
    - REPLAYDASH_API_URL environment variable (or config/preview_settings.yml)
    - REPLAYDASH_STATE_DATABASE_URL for --persist (SQLite file by default)

Exit codes:
    0 - Command succeeded
    1 - Backend error or invalid arguments
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from replaydash.charts.registry import CHART_TYPES, DEFAULT_CHART_TYPE, describe
from replaydash.charts.renderer import render
from replaydash.integrations.dashboard_api.client import (
    DEFAULT_DASHBOARD_URL,
    get_dashboard_api_client,
)
from replaydash.integrations.dashboard_api.exceptions import DashboardAPIError
from replaydash.repositories.persistence_store import SqlPersistenceStore
from replaydash.services.preview_scheduler import PreviewScheduler
from replaydash.services.query_template import QueryTemplate
from replaydash.services.variable_store import VariableStore
from replaydash.services.exceptions import ExtractionError, PreviewEngineError

logger = logging.getLogger(__name__)


def _parse_pairs(pairs: Optional[List[str]], option: str) -> Dict[str, str]:
    """Parse repeated name=value options."""
    parsed: Dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"{option} expects name=value, got {pair!r}")
        parsed[name.strip()] = value
    return parsed


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def cmd_health(args: argparse.Namespace) -> int:
    async with get_dashboard_api_client(base_url=args.api_url) as client:
        health = await client.check_health()
    _print_json({
        "ok": health.ok,
        "openai_enabled": health.openai_enabled,
        "total_replays": health.total_replays,
    })
    return 0


async def cmd_dashboards(args: argparse.Namespace) -> int:
    async with get_dashboard_api_client(base_url=args.api_url) as client:
        dashboards = await client.list_dashboards()
    for d in dashboards:
        print(f"{d.url}\t{d.name}")
    return 0


async def cmd_variables(args: argparse.Namespace) -> int:
    async with get_dashboard_api_client(base_url=args.api_url) as client:
        template = QueryTemplate(client, dashboard_url=args.dashboard)
        variables = await template.extract_variables(args.query)
    _print_json({name: var.to_dict() for name, var in variables.items()})
    return 0


def _variable_store(persist: bool) -> VariableStore:
    """Bindings store for the CLI; --persist shares the dashboard's saved selections."""
    if not persist:
        return VariableStore()
    try:
        return VariableStore(SqlPersistenceStore())
    except (SQLAlchemyError, ValueError) as e:
        logger.warning("State database unavailable, bindings will not be saved: %s", e)
        return VariableStore()


async def cmd_preview(args: argparse.Namespace) -> int:
    """Run one preview the way the editor does and print the chart data."""
    config = {"type": args.type, **_parse_pairs(args.config, "--config")}
    explicit = _parse_pairs(args.set, "--set")
    store = _variable_store(args.persist)

    async with get_dashboard_api_client(base_url=args.api_url) as client:
        template = QueryTemplate(client, dashboard_url=args.dashboard)
        try:
            variables = await template.extract_variables(args.query)
        except ExtractionError as e:
            logger.warning("Variable extraction failed, running with explicit bindings: %s", e.message)
            variables = {}

        bindings = {**store.get(args.dashboard), **explicit}
        if variables:
            bindings = store.reconcile(args.dashboard, bindings, variables)

        scheduler = PreviewScheduler(client, dashboard_url=args.dashboard, quiescence_seconds=0)
        scheduler.trigger_query_change(args.query, bindings)
        await scheduler.wait_until_idle()

    chart = render(config, scheduler.result)
    _print_json({"bindings": bindings, **chart.to_dict()})
    return 0 if chart.status.value in ("ok", "no_data") else 1


def cmd_chart_types(args: argparse.Namespace) -> int:
    _print_json([describe(t).to_dict() for t in CHART_TYPES])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="replaydash",
        description="Replay dashboard preview engine",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Dashboard backend URL (default: REPLAYDASH_API_URL or config/preview_settings.yml)"
    )
    parser.add_argument(
        "--dashboard",
        default=DEFAULT_DASHBOARD_URL,
        help="Dashboard URL whose replay filter applies (default: default)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health", help="Show backend health and AI availability")
    sub.add_parser("dashboards", help="List dashboards")
    sub.add_parser("chart-types", help="Show config fields per chart type")

    variables = sub.add_parser("variables", help="Show the variables a SQL template uses")
    variables.add_argument("--query", required=True, help="SQL template")

    preview = sub.add_parser("preview", help="Execute a SQL template and render it")
    preview.add_argument("--query", required=True, help="SQL template")
    preview.add_argument(
        "--type",
        choices=list(CHART_TYPES),
        default=DEFAULT_CHART_TYPE,
        help="Chart type (default: table)"
    )
    preview.add_argument(
        "--config",
        action="append",
        metavar="FIELD=VALUE",
        help="Chart config field, repeatable (e.g. bar_label_column=map)"
    )
    preview.add_argument(
        "--set",
        action="append",
        metavar="NAME=VALUE",
        help="Variable binding, repeatable"
    )
    preview.add_argument(
        "--persist",
        action="store_true",
        help="Load and save the dashboard's variable selections in the state database"
    )
    return parser


COMMANDS = {
    "health": cmd_health,
    "dashboards": cmd_dashboards,
    "variables": cmd_variables,
    "preview": cmd_preview,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if args.command == "chart-types":
        return cmd_chart_types(args)

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except ValueError as e:
        print(f"Invalid arguments: {e}", file=sys.stderr)
        return 1
    except DashboardAPIError as e:
        print(f"Backend error: {e.message}", file=sys.stderr)
        return 1
    except PreviewEngineError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled by user.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
