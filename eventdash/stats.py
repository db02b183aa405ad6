from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, tzinfo
from typing import Iterable

from .models import Bucket, Event, Stats
from .timeutil import floor_hour, utc_now

RECENT_WINDOW = timedelta(seconds=60)
HOURS_PER_DAY = 24
BUCKET_LIMIT = 24


def compute_stats(window: Iterable[Event], total_elements: int, now: datetime | None = None) -> Stats:
    events = list(window)
    if now is None:
        now = utc_now()
    return Stats(
        total_events=total_elements,
        unique_actors=len({e.user_id for e in events}),
        recent_rate=sum(1 for e in events if now - e.created_at < RECENT_WINDOW),
        avg_per_hour=round(len(events) / HOURS_PER_DAY),
    )


def bucket_by_hour(events: Iterable[Event], *, limit: int = BUCKET_LIMIT, tz: tzinfo | None = None) -> list[Bucket]:
    """Count events per local hour, oldest first, keeping the most recent `limit` hours."""
    counts = Counter(floor_hour(e.created_at, tz) for e in events)
    buckets = [Bucket(bucket_start=start, count=n) for start, n in sorted(counts.items())]
    if limit <= 0:
        return []
    return buckets[-limit:]
