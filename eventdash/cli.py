from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .api import EventsApi
from .config import AppConfig, load_config
from .exceptions import EventDashError
from .headless import run_poller
from .health import ServiceHealthPoller
from .log_setup import setup_logging
from .models import Event, Page
from .session import build_client
from .status import HealthSnapshot, HealthStatus
from .timeutil import format_local
from .ui import run_dashboard

DEFAULT_CONFIG = "eventdash.json"

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eventdash",
        description="Terminal dashboard for the social events stream.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to config JSON (default: {DEFAULT_CONFIG} if present, else built-in defaults).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    sub = parser.add_subparsers(dest="cmd", required=False)

    run = sub.add_parser("run", help="Run the live dashboard (default).")
    run.add_argument(
        "--no-screen",
        action="store_true",
        help="Disable alternate-screen mode (useful for logs).",
    )
    run.add_argument(
        "--once",
        action="store_true",
        help="Render one frame and exit (still fetches first).",
    )
    run.add_argument("--search", default=None, help="Start in search mode with this query.")
    run.add_argument(
        "--no-auto-refresh",
        action="store_true",
        help="Start with auto-refresh off.",
    )

    poll = sub.add_parser("poll", help="Refresh in a loop (no UI) and log a summary line each tick.")
    poll.add_argument(
        "--once",
        action="store_true",
        help="Fetch once and exit.",
    )

    search = sub.add_parser("search", help="Search events once and print the results.")
    search.add_argument("text", help="Search text.")
    search.add_argument("--page", type=int, default=0, help="Zero-based page index.")

    sub.add_parser("health", help="Probe every service once; exit 1 if any is not UP.")

    show = sub.add_parser("show", help="Look up a single event or a user's events.")
    show.add_argument("kind", choices=["event", "user"])
    show.add_argument("id")

    return parser


def _resolve_config(parser: argparse.ArgumentParser, raw_path: str | None) -> AppConfig:
    if raw_path is None:
        default = Path(DEFAULT_CONFIG)
        return load_config(default if default.exists() else None)
    config_path = Path(raw_path)
    if not config_path.exists():
        parser.error(f"Config file not found: {config_path}")
    return load_config(config_path)


def _events_table(title: str, events: tuple[Event, ...] | list[Event]) -> Table:
    table = Table(title=title, expand=True)
    table.add_column("When", no_wrap=True)
    table.add_column("User", no_wrap=True)
    table.add_column("Text")
    table.add_column("ID", no_wrap=True, style="dim")
    for e in events:
        table.add_row(format_local(e.created_at), e.user_id, e.text, e.id)
    return table


def _health_table(snapshot: HealthSnapshot) -> Table:
    styles = {HealthStatus.UP: "green", HealthStatus.DOWN: "red", HealthStatus.UNKNOWN: "yellow"}
    table = Table(title="Service Health")
    table.add_column("Service")
    table.add_column("Endpoint")
    table.add_column("Status")
    table.add_column("Detail")
    for s in snapshot.services:
        table.add_row(
            s.target.name,
            s.target.url,
            f"[{styles[s.status]}]{s.status.key}[/]",
            s.detail,
        )
    return table


async def _search_once(cfg: AppConfig, text: str, page: int) -> Page:
    async with build_client(cfg) as client:
        return await EventsApi(client, cfg.api_base_url).search_events(text, page, cfg.page_size)


async def _health_once(cfg: AppConfig) -> HealthSnapshot:
    async with build_client(cfg) as client:
        return await ServiceHealthPoller(client, cfg.services).poll_all()


async def _show(cfg: AppConfig, kind: str, ident: str) -> list[Event]:
    async with build_client(cfg) as client:
        api = EventsApi(client, cfg.api_base_url)
        if kind == "event":
            return [await api.get_event(ident)]
        return list(await api.get_events_by_user(ident))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    cmd = args.cmd or "run"
    level = logging.DEBUG if args.verbose else logging.INFO
    # The live screen owns the terminal; keep log noise down to problems.
    setup_logging(level if cmd != "run" else max(level, logging.WARNING))

    try:
        cfg = _resolve_config(parser, args.config)
        console = Console()

        if cmd == "run":
            if args.no_auto_refresh:
                cfg = replace(cfg, auto_refresh=False)
            asyncio.run(run_dashboard(cfg=cfg, screen=not args.no_screen, once=args.once, initial_search=args.search))
            return 0
        if cmd == "poll":
            asyncio.run(run_poller(cfg=cfg, once=args.once))
            return 0
        if cmd == "search":
            page = asyncio.run(_search_once(cfg, args.text, max(0, args.page)))
            console.print(
                _events_table(
                    f"Search “{args.text}” page {max(0, args.page) + 1}/{max(1, page.total_pages)} "
                    f"({page.total_elements:,} matches)",
                    page.content,
                )
            )
            return 0
        if cmd == "health":
            snapshot = asyncio.run(_health_once(cfg))
            console.print(_health_table(snapshot))
            return 0 if all(s.status is HealthStatus.UP for s in snapshot.services) else 1
        if cmd == "show":
            events = asyncio.run(_show(cfg, args.kind, args.id))
            console.print(_events_table(f"{args.kind} {args.id}", events))
            return 0
    except EventDashError as e:
        logger.error("%s", e)
        return 2
    except KeyboardInterrupt:
        return 130

    parser.error(f"Unknown command: {cmd}")
    return 2
