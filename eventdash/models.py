from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .exceptions import ApiError
from .timeutil import parse_datetime


@dataclass(frozen=True)
class Event:
    id: str
    user_id: str
    text: str
    created_at: datetime

    @classmethod
    def from_json(cls, raw: Any) -> Event:
        if not isinstance(raw, dict):
            raise ApiError(f"Event payload must be an object, got {type(raw).__name__}")
        eid = raw.get("id")
        if eid is None or str(eid).strip() == "":
            raise ApiError("Event payload is missing 'id'")
        created_at = parse_datetime(str(raw.get("createdAt") or ""))
        if created_at is None:
            raise ApiError(f"Event {eid} has an unparseable createdAt: {raw.get('createdAt')!r}")
        return cls(
            id=str(eid),
            user_id=str(raw.get("userId") or ""),
            text=str(raw.get("text") or ""),
            created_at=created_at,
        )


def dedupe_events(events: list[Event] | tuple[Event, ...]) -> tuple[Event, ...]:
    seen: set[str] = set()
    out: list[Event] = []
    for e in events:
        if e.id in seen:
            continue
        seen.add(e.id)
        out.append(e)
    return tuple(out)


@dataclass(frozen=True)
class Page:
    content: tuple[Event, ...]
    total_pages: int
    total_elements: int

    @classmethod
    def from_json(cls, raw: Any) -> Page:
        if not isinstance(raw, dict):
            raise ApiError(f"Page payload must be an object, got {type(raw).__name__}")
        content_raw = raw.get("content") or []
        if not isinstance(content_raw, list):
            raise ApiError("Page payload 'content' must be a list")
        try:
            total_pages = int(raw.get("totalPages") or 0)
            total_elements = int(raw.get("totalElements") or 0)
        except (TypeError, ValueError, OverflowError) as e:
            raise ApiError(f"Page payload has invalid totals: {e}") from e
        return cls(
            content=dedupe_events([Event.from_json(item) for item in content_raw]),
            total_pages=max(0, total_pages),
            total_elements=max(0, total_elements),
        )


class ViewMode(Enum):
    LIVE = "live"
    SEARCH = "search"


@dataclass(frozen=True)
class ViewState:
    mode: ViewMode = ViewMode.LIVE
    page_index: int = 0
    total_pages: int = 0
    total_elements: int = 0
    visible_page: tuple[Event, ...] = ()
    query: str | None = None
    auto_refresh: bool = True
    loading: bool = False
    last_error: str | None = None
    last_updated: datetime | None = None


@dataclass(frozen=True)
class Bucket:
    bucket_start: datetime
    count: int


@dataclass(frozen=True)
class Stats:
    total_events: int = 0
    unique_actors: int = 0
    recent_rate: int = 0
    avg_per_hour: int = 0
