from __future__ import annotations

import asyncio
import logging

from .config import AppConfig
from .feed import EventFeedSynchronizer
from .session import DashboardSession
from .status import HealthSnapshot, HealthStatus

logger = logging.getLogger(__name__)


def summary_line(feed: EventFeedSynchronizer, health: HealthSnapshot) -> str:
    view = feed.view
    stats = feed.stats()
    counts = health.counts()
    msg = (
        f"{view.mode.value} page {view.page_index + 1}/{max(1, view.total_pages)}; "
        f"total={stats.total_events} users={stats.unique_actors} "
        f"per_min={stats.recent_rate} avg_hour={stats.avg_per_hour} window={len(feed.window)}; "
        f"health up={counts[HealthStatus.UP]} down={counts[HealthStatus.DOWN]} "
        f"unknown={counts[HealthStatus.UNKNOWN]}"
    )
    if view.last_error:
        msg += f"; last_error={view.last_error}"
    return msg


async def run_poller(*, cfg: AppConfig, once: bool) -> None:
    async with DashboardSession(cfg) as session:
        logger.info(summary_line(session.feed, session.health.snapshot))
        if once:
            return
        while True:
            await asyncio.sleep(cfg.refresh_interval_seconds)
            logger.info(summary_line(session.feed, session.health.snapshot))
