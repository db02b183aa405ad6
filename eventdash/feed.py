from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Sequence

from .api import EventsApi
from .exceptions import ApiError
from .models import Bucket, Event, Page, Stats, ViewMode, ViewState
from .stats import bucket_by_hour, compute_stats
from .timeutil import utc_now

logger = logging.getLogger(__name__)

WINDOW_SIZE = 100
PAGE_SIZE = 50

ViewListener = Callable[[ViewState], None]


def merge_window(window: Sequence[Event], content: Sequence[Event], limit: int = WINDOW_SIZE) -> tuple[Event, ...]:
    """Prepend unseen events from `content` to `window`, keeping at most `limit` entries.

    Previously seen events keep their position; nothing is re-sorted by time.
    """
    seen = {e.id for e in window}
    fresh: list[Event] = []
    for e in content:
        if e.id in seen:
            continue
        seen.add(e.id)
        fresh.append(e)
    return tuple([*fresh, *window][:limit])


class EventFeedSynchronizer:
    """Keeps the visible page, pagination and rolling window in step with the backend.

    Fetches are not queued or fenced: when two requests overlap, whichever
    response lands last owns the visible page, and every live response that
    lands while in live mode is merged into the rolling window.
    """

    def __init__(
        self,
        api: EventsApi,
        *,
        page_size: int = PAGE_SIZE,
        window_size: int = WINDOW_SIZE,
        auto_refresh: bool = True,
    ) -> None:
        self._api = api
        self._page_size = page_size
        self._window_size = window_size
        self._view = ViewState(auto_refresh=auto_refresh)
        self._window: tuple[Event, ...] = ()
        self._listeners: list[ViewListener] = []
        self._in_flight = 0

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def window(self) -> tuple[Event, ...]:
        return self._window

    def stats(self, now: datetime | None = None) -> Stats:
        return compute_stats(self._window, self._view.total_elements, now)

    def buckets(self) -> list[Bucket]:
        return bucket_by_hour(self._window)

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, **changes) -> None:
        self._view = replace(self._view, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._view)
            except Exception:
                logger.exception("View listener %r failed", listener)

    def _begin(self) -> None:
        self._in_flight += 1
        self._publish(loading=True)

    def _end(self, **changes) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        self._publish(loading=self._in_flight > 0, **changes)

    def _page_changes(self, page: Page, page_index: int) -> dict[str, Any]:
        return {
            "page_index": page_index,
            "visible_page": page.content,
            "total_pages": page.total_pages,
            "total_elements": page.total_elements,
            "last_error": None,
            "last_updated": utc_now(),
        }

    async def fetch_live_page(self, page_index: int) -> bool:
        changes: dict[str, Any] = {}
        self._begin()
        try:
            try:
                page = await self._api.get_events(page_index, self._page_size)
            except ApiError as e:
                logger.warning("Failed to fetch events page %d: %s", page_index, e)
                changes = {"last_error": str(e)}
                return False

            if self._view.mode is not ViewMode.LIVE:
                # Landed after a switch to search mode; the window is frozen until search is cleared.
                logger.debug("Dropping live page %d received in search mode", page_index)
                return False

            self._window = merge_window(self._window, page.content, self._window_size)
            changes = self._page_changes(page, page_index)
        finally:
            self._end(**changes)

        logger.debug(
            "Fetched page %d: %d events, window=%d, total=%d",
            page_index,
            len(page.content),
            len(self._window),
            page.total_elements,
        )
        return True

    async def _fetch_search_page(self, query: str, page_index: int) -> bool:
        changes: dict[str, Any] = {}
        self._begin()
        try:
            try:
                page = await self._api.search_events(query, page_index, self._page_size)
            except ApiError as e:
                logger.warning("Search for %r (page %d) failed: %s", query, page_index, e)
                changes = {"last_error": str(e)}
                return False

            if self._view.mode is not ViewMode.SEARCH:
                logger.debug("Dropping search result for %r after leaving search mode", query)
                return False

            changes = self._page_changes(page, page_index)
        finally:
            self._end(**changes)

        logger.debug("Search %r page %d: %d of %d", query, page_index, len(page.content), page.total_elements)
        return True

    async def search(self, query_text: str) -> bool:
        query = (query_text or "").strip()
        if not query:
            logger.debug("Ignoring blank search")
            return False
        # Pagination fields keep describing the visible page until the first result lands.
        self._publish(mode=ViewMode.SEARCH, query=query)
        return await self._fetch_search_page(query, 0)

    async def clear_search(self) -> bool:
        self._publish(mode=ViewMode.LIVE, query=None, page_index=0)
        return await self.fetch_live_page(0)

    def _clamp(self, index: int) -> int:
        last = max(0, self._view.total_pages - 1)
        return max(0, min(index, last))

    async def set_page(self, index: int) -> bool:
        index = self._clamp(index)
        if self._view.mode is ViewMode.SEARCH and self._view.query:
            return await self._fetch_search_page(self._view.query, index)
        return await self.fetch_live_page(index)

    async def next_page(self) -> bool:
        return await self.set_page(self._view.page_index + 1)

    async def prev_page(self) -> bool:
        return await self.set_page(self._view.page_index - 1)

    async def refresh(self) -> bool:
        return await self.set_page(self._view.page_index)

    async def tick(self) -> bool:
        if self._view.mode is ViewMode.SEARCH or not self._view.auto_refresh:
            return False
        return await self.fetch_live_page(self._view.page_index)

    def set_auto_refresh(self, enabled: bool) -> None:
        if enabled != self._view.auto_refresh:
            logger.info("Auto-refresh %s", "on" if enabled else "off")
            self._publish(auto_refresh=enabled)

    def toggle_auto_refresh(self) -> bool:
        self.set_auto_refresh(not self._view.auto_refresh)
        return self._view.auto_refresh
