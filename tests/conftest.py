"""Shared fixtures: a fake event backend served through httpx.MockTransport."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
import pytest_asyncio

from eventdash.api import EventsApi
from eventdash.models import Event

BASE_URL = "http://backend.test"
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_event(eid: str, user: str = "u1", *, at: datetime | None = None, text: str = "hello") -> Event:
    return Event(id=eid, user_id=user, text=text, created_at=at or T0)


def event_json(eid: str, user: str = "u1", *, at: datetime | None = None, text: str = "hello") -> dict[str, Any]:
    return {
        "id": eid,
        "userId": user,
        "text": text,
        "createdAt": (at or T0).isoformat().replace("+00:00", "Z"),
    }


def page_json(ids: list[str], *, total_pages: int = 1, total_elements: int | None = None) -> dict[str, Any]:
    return {
        "content": [event_json(i, user=f"u-{i}", at=T0 - timedelta(minutes=n)) for n, i in enumerate(ids)],
        "totalPages": total_pages,
        "totalElements": len(ids) if total_elements is None else total_elements,
    }


class FakeBackend:
    """Scripted event backend; records every request it receives."""

    def __init__(self) -> None:
        self.live_pages: dict[int, dict[str, Any] | str] = {}
        self.search_pages: dict[tuple[str, int], dict[str, Any]] = {}
        self.fail_live = False
        self.fail_search = False
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params
        if path == "/api/v1/events":
            if self.fail_live:
                return httpx.Response(503, json={"error": "unavailable"})
            page = int(params.get("page", "0"))
            body = self.live_pages.get(page, page_json([]))
            if isinstance(body, str):
                return httpx.Response(200, text=body, headers={"content-type": "application/json"})
            return httpx.Response(200, json=body)
        if path == "/api/v1/events/search":
            if self.fail_search:
                raise httpx.ConnectError("connection refused", request=request)
            key = (params.get("text", ""), int(params.get("page", "0")))
            return httpx.Response(200, json=self.search_pages.get(key, page_json([])))
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend: FakeBackend):
    async with httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)) as c:
        yield c


@pytest.fixture
def api(client: httpx.AsyncClient) -> EventsApi:
    return EventsApi(client, BASE_URL)
