from __future__ import annotations

import logging
from typing import Any

import httpx

from .exceptions import ApiError
from .models import Event, Page, dedupe_events

logger = logging.getLogger(__name__)

EVENTS_PATH = "/api/v1/events"
DEFAULT_SORT = "createdAt,desc"


async def _get_json(client: httpx.AsyncClient, url: str, params: dict[str, Any] | None = None) -> Any:
    logger.debug("GET %s params=%s", url, params)
    try:
        resp = await client.get(url, params=params)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ApiError(
            f"GET {url} returned HTTP {e.response.status_code}",
            status_code=e.response.status_code,
        ) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ApiError(f"GET {url} failed: {type(e).__name__}: {e}") from e
    try:
        return resp.json()
    except ValueError as e:
        raise ApiError(f"GET {url} returned invalid JSON") from e


class EventsApi:
    """Async client for the event query REST API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self._base_url}{EVENTS_PATH}{path}"

    async def get_events(self, page: int = 0, size: int = 20, sort: str = DEFAULT_SORT) -> Page:
        raw = await _get_json(self._client, self._url(""), {"page": page, "size": size, "sort": sort})
        return Page.from_json(raw)

    async def search_events(self, text: str, page: int = 0, size: int = 20) -> Page:
        raw = await _get_json(self._client, self._url("/search"), {"text": text, "page": page, "size": size})
        return Page.from_json(raw)

    async def get_event(self, event_id: str) -> Event:
        raw = await _get_json(self._client, self._url(f"/{event_id}"))
        return Event.from_json(raw)

    async def get_events_by_user(self, user_id: str) -> tuple[Event, ...]:
        raw = await _get_json(self._client, self._url(f"/user/{user_id}"))
        # The user endpoint answers with either a bare list or a page object.
        if isinstance(raw, dict):
            return Page.from_json(raw).content
        if not isinstance(raw, list):
            raise ApiError(f"Unexpected payload for user {user_id}: {type(raw).__name__}")
        return dedupe_events([Event.from_json(item) for item in raw])
