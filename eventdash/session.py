from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

import httpx

from . import __version__
from .api import EventsApi
from .config import AppConfig
from .feed import EventFeedSynchronizer
from .health import ServiceHealthPoller

logger = logging.getLogger(__name__)


def build_client(cfg: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(cfg.request_timeout_seconds, connect=5.0),
        headers={"User-Agent": f"eventdash/{__version__}", "Accept": "application/json"},
        follow_redirects=True,
    )


async def _every(name: str, interval: float, action: Callable[[], Awaitable[object]]) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await action()
        except Exception:
            logger.exception("%s timer iteration failed", name)


class DashboardSession:
    """Wires the feed and health poller to one HTTP client and runs their timers.

    Use as an async context manager; both timers are cancelled on every exit path.
    """

    def __init__(self, cfg: AppConfig, client: httpx.AsyncClient | None = None) -> None:
        self.cfg = cfg
        self.client = client
        self._owns_client = False
        self._feed: EventFeedSynchronizer | None = None
        self._health: ServiceHealthPoller | None = None
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def feed(self) -> EventFeedSynchronizer:
        if self._feed is None:
            raise RuntimeError("DashboardSession has not been started")
        return self._feed

    @property
    def health(self) -> ServiceHealthPoller:
        if self._health is None:
            raise RuntimeError("DashboardSession has not been started")
        return self._health

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def _open(self) -> None:
        if self.client is None:
            self.client = build_client(self.cfg)
            self._owns_client = True
        if self._feed is None:
            self._feed = EventFeedSynchronizer(
                EventsApi(self.client, self.cfg.api_base_url),
                page_size=self.cfg.page_size,
                window_size=self.cfg.window_size,
                auto_refresh=self.cfg.auto_refresh,
            )
            self._health = ServiceHealthPoller(self.client, self.cfg.services)

    async def start(self) -> None:
        if self._tasks:
            return
        self._open()
        feed, health = self.feed, self.health
        await asyncio.gather(feed.fetch_live_page(0), health.poll_all())
        self._tasks = [
            asyncio.create_task(_every("feed", self.cfg.refresh_interval_seconds, feed.tick), name="eventdash-feed"),
            asyncio.create_task(
                _every("health", self.cfg.health_interval_seconds, health.poll_all), name="eventdash-health"
            ),
        ]
        logger.info(
            "Session started: api=%s refresh=%ss health=%ss services=%d",
            self.cfg.api_base_url,
            self.cfg.refresh_interval_seconds,
            self.cfg.health_interval_seconds,
            len(self.cfg.services),
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for t in tasks:
            t.cancel()
        for t in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await t
        if self._owns_client and self.client is not None:
            await self.client.aclose()
        logger.debug("Session stopped")

    async def __aenter__(self) -> DashboardSession:
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
