from __future__ import annotations

import asyncio
import contextlib
import shutil
import sys
from datetime import datetime

from rich import box
from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text
from rich.live import Live

from .config import AppConfig
from .models import Bucket, Event, Stats, ViewMode, ViewState
from .session import DashboardSession
from .status import HealthSnapshot, HealthStatus, ServiceHealth
from .timeutil import format_local

AMBER = "rgb(255,176,0)"
DIM_AMBER = "rgb(160,110,0)"
GREEN = "rgb(0,255,0)"
RED = "rgb(255,80,80)"
MATRIX_GREEN = "rgb(80,255,140)"
DIM_MATRIX = "rgb(0,110,60)"

# Panel is 80 cols wide. With a 1-col left/right padding and a 1-col border on each side,
# the usable width for single-line content is 76.
INNER_WIDTH = 76

COL_WHEN = 12
COL_USER = 12
COL_SEP = "│"


def _status_style(status: HealthStatus) -> str:
    if status is HealthStatus.UP:
        return GREEN
    if status is HealthStatus.DOWN:
        return RED
    return AMBER


def _status_chip(status: HealthStatus) -> Text:
    short = {
        HealthStatus.UP: "UP",
        HealthStatus.DOWN: "DOWN",
        HealthStatus.UNKNOWN: "UNK",
    }[status]
    return Text(f"● {short}", style=_status_style(status))


def _truncate(s: str, n: int) -> str:
    s = s.replace("\n", " ").strip()
    if len(s) <= n:
        return s
    return s[: max(0, n - 1)] + "…"


def _fit(s: str, width: int, *, align: str = "left") -> str:
    s = _truncate(s, width)
    if align == "right":
        return s.rjust(width)
    return s.ljust(width)


def _fit_text(text: Text, width: int) -> Text:
    t = text.copy()
    t.truncate(width, overflow="ellipsis")
    pad = width - len(t.plain)
    if pad > 0:
        t.append(" " * pad)
    return t


def _count_spark(buckets: list[Bucket], *, style: str) -> Text:
    blocks = "▁▂▃▄▅▆▇█"
    if not buckets:
        return Text("·" * 24, style=DIM_AMBER)
    hi = max(b.count for b in buckets)
    out = Text()
    for b in buckets:
        idx = int(round(b.count / hi * (len(blocks) - 1))) if hi else 0
        out.append(blocks[max(0, min(len(blocks) - 1, idx))], style=style)
    return out


def _render_stats(stats: Stats) -> Text:
    return Text.assemble(
        ("Total ", DIM_AMBER),
        (f"{stats.total_events:,}", f"bold {AMBER}"),
        ("  Users ", DIM_AMBER),
        (f"{stats.unique_actors:,}", f"bold {GREEN}"),
        ("  Per min ", DIM_AMBER),
        (f"{stats.recent_rate}", f"bold {MATRIX_GREEN}"),
        ("  Avg/hour ", DIM_AMBER),
        (f"{stats.avg_per_hour}", f"bold {AMBER}"),
    )


def _render_chart(buckets: list[Bucket]) -> Group:
    spark = _count_spark(buckets, style=MATRIX_GREEN)
    if buckets:
        first = buckets[0].bucket_start.strftime("%b %d %H:00")
        last = buckets[-1].bucket_start.strftime("%H:00")
        peak = max(b.count for b in buckets)
        label = f"  {first} → {last}  peak {peak}/h"
    else:
        label = "  No data available for chart"
    line = Text("Events/hour ", style=DIM_AMBER) + spark + Text(label, style=DIM_AMBER)
    return Group(_fit_text(line, INNER_WIDTH))


def _render_event(event: Event) -> Text:
    text_width = INNER_WIDTH - COL_WHEN - COL_USER - 2 * len(COL_SEP)
    return Text.assemble(
        (_fit(format_local(event.created_at), COL_WHEN), DIM_AMBER),
        (COL_SEP, DIM_AMBER),
        (_fit(f"@{event.user_id}", COL_USER), GREEN),
        (COL_SEP, DIM_AMBER),
        (_fit(event.text, text_width), AMBER),
    )


def _render_events(view: ViewState, rows: int) -> Group:
    title = "Search Results" if view.mode is ViewMode.SEARCH else "Recent Events"
    if view.query:
        title += f" for “{view.query}”"
    counter = f"showing {len(view.visible_page)} of {view.total_elements:,}"
    header = Text.assemble(
        (_fit(title, INNER_WIDTH - len(counter) - 1), f"bold {AMBER}"),
        (" " + counter, DIM_AMBER),
    )
    lines: list[Text] = [header, Text("─" * INNER_WIDTH, style=DIM_AMBER)]
    if not view.visible_page:
        msg = "Loading…" if view.loading else "No events found"
        lines.append(Text(_fit(msg, INNER_WIDTH), style=DIM_AMBER))
    for event in view.visible_page[:rows]:
        lines.append(_render_event(event))
    return Group(*lines)


def _render_health_row(svc: ServiceHealth) -> Text:
    where = f":{svc.target.port}" if svc.target.port else svc.target.url
    return Text.assemble(
        _fit_text(_status_chip(svc.status), 7),
        (_fit(svc.target.name, 24), AMBER),
        (_fit(where, 10), DIM_AMBER),
        (_fit(svc.detail, INNER_WIDTH - 41), _status_style(svc.status)),
    )


def _render_health(health: HealthSnapshot) -> Group:
    checked = format_local(health.checked_at, "%H:%M:%S") if health.checked_at else "pending"
    header = Text(_fit(f"Service Health (checked {checked})", INNER_WIDTH), style=f"bold {AMBER}")
    return Group(header, *[_render_health_row(s) for s in health.services])


def _render_screen(
    *,
    view: ViewState,
    stats: Stats,
    buckets: list[Bucket],
    health: HealthSnapshot,
    list_rows: int,
    prompt: str | None,
) -> Panel:
    now_s = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")
    header1 = Text.assemble(
        ("SOCIAL EVENTS DASHBOARD", f"bold {AMBER}"),
        ("  ", DIM_AMBER),
        (now_s, DIM_AMBER),
    )
    refresh_chip = ("AUTO ON", GREEN) if view.auto_refresh and view.mode is ViewMode.LIVE else ("AUTO OFF", DIM_AMBER)
    page_s = f"page {view.page_index + 1}/{max(1, view.total_pages)}"
    header2 = Text.assemble(
        (view.mode.value.upper(), f"bold {MATRIX_GREEN}"),
        ("  ", DIM_AMBER),
        refresh_chip,
        ("  ", DIM_AMBER),
        (page_s, AMBER),
        ("  updated ", DIM_AMBER),
        (format_local(view.last_updated, "%H:%M:%S"), AMBER),
        ("  …" if view.loading else "", DIM_AMBER),
    )

    if prompt is not None:
        keys = Text(_fit(f"search: {prompt}█  (enter submit, esc cancel)", INNER_WIDTH), style=f"bold {AMBER}")
    else:
        keys = Text(
            _fit("r refresh  n/p page  a auto  / search  c clear  q quit", INNER_WIDTH),
            style=DIM_AMBER,
        )

    parts: list[Text | Group] = [
        _fit_text(header1, INNER_WIDTH),
        _fit_text(header2, INNER_WIDTH),
        _fit_text(_render_stats(stats), INNER_WIDTH),
        _render_chart(buckets),
        _render_events(view, list_rows),
        _render_health(health),
    ]
    if view.last_error:
        parts.append(Text(_fit(f"! {view.last_error}", INNER_WIDTH), style=RED))
    parts.append(keys)

    border_style = MATRIX_GREEN
    worst = health.worst
    if worst is HealthStatus.DOWN:
        border_style = RED
    elif worst is HealthStatus.UNKNOWN:
        border_style = AMBER
    return Panel(Group(*parts), border_style=border_style, box=box.DOUBLE, padding=(0, 1))


def _list_rows(services_count: int) -> int:
    size = shutil.get_terminal_size(fallback=(80, 25))
    # Outer border 2, headers 2, stats 1, chart 1, list header + rule 2,
    # health header + rows, error 1, keys 1.
    overhead = 2 + 2 + 1 + 1 + 2 + 1 + services_count + 1 + 1
    return max(3, size.lines - overhead)


async def run_dashboard(
    *,
    cfg: AppConfig,
    screen: bool,
    once: bool,
    initial_search: str | None = None,
) -> None:
    console = Console(
        width=80,
        color_system="truecolor",
        force_terminal=True,
        style=f"{AMBER} on black",
    )

    async with DashboardSession(cfg) as session:
        feed = session.feed
        if initial_search:
            await feed.search(initial_search)

        loop = asyncio.get_running_loop()
        key_queue: asyncio.Queue[str] = asyncio.Queue()
        pending: set[asyncio.Task[bool]] = set()
        prompt: str | None = None

        def _spawn(coro) -> None:
            # Key actions run in the background so rendering never waits on the network.
            task = asyncio.create_task(coro)
            pending.add(task)
            task.add_done_callback(pending.discard)

        fd: int | None = None
        old_termios: list | None = None

        def _enable_keys() -> None:
            nonlocal fd, old_termios
            if not sys.stdin.isatty():
                return
            try:
                import termios
                import tty

                fd = sys.stdin.fileno()
                old_termios = termios.tcgetattr(fd)
                tty.setcbreak(fd)

                def _on_stdin() -> None:
                    try:
                        ch = sys.stdin.read(1)
                    except OSError:
                        return
                    if ch:
                        key_queue.put_nowait(ch)

                loop.add_reader(fd, _on_stdin)
            except (ImportError, OSError):
                fd = None
                old_termios = None

        def _disable_keys() -> None:
            nonlocal fd, old_termios
            if fd is None:
                return
            try:
                import termios

                loop.remove_reader(fd)
                if old_termios is not None:
                    termios.tcsetattr(fd, termios.TCSADRAIN, old_termios)
            finally:
                fd = None
                old_termios = None

        _enable_keys()
        try:
            with Live(
                console=console,
                screen=screen,
                auto_refresh=False,
                refresh_per_second=4,
                transient=False,
            ) as live:
                while True:
                    while True:
                        try:
                            ch = key_queue.get_nowait()
                        except asyncio.QueueEmpty:
                            break
                        if prompt is not None:
                            if ch in {"\n", "\r"}:
                                _spawn(feed.search(prompt))
                                prompt = None
                            elif ch == "\x1b":
                                prompt = None
                            elif ch in {"\x7f", "\b"}:
                                prompt = prompt[:-1]
                            elif ch.isprintable():
                                prompt += ch
                            continue
                        ch = ch.lower()
                        if ch in {"q", "\u0003"}:
                            return
                        if ch == "r":
                            _spawn(feed.refresh())
                        elif ch == "n":
                            _spawn(feed.next_page())
                        elif ch == "p":
                            _spawn(feed.prev_page())
                        elif ch == "a":
                            feed.toggle_auto_refresh()
                        elif ch == "c" and feed.view.mode is ViewMode.SEARCH:
                            _spawn(feed.clear_search())
                        elif ch == "/":
                            prompt = ""

                    frame = Align.center(
                        _render_screen(
                            view=feed.view,
                            stats=feed.stats(),
                            buckets=feed.buckets(),
                            health=session.health.snapshot,
                            list_rows=_list_rows(len(session.health.targets)),
                            prompt=prompt,
                        ),
                        vertical="top",
                    )
                    live.update(frame, refresh=True)
                    if once:
                        break
                    await asyncio.sleep(0.25)
        finally:
            with contextlib.suppress(Exception):
                _disable_keys()
            for task in list(pending):
                task.cancel()
            for task in list(pending):
                with contextlib.suppress(asyncio.CancelledError):
                    await task
