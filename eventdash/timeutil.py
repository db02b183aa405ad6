from __future__ import annotations

from datetime import datetime, timezone, tzinfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    v = value.strip()
    if not v:
        return None
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(v)
    except ValueError:
        return None
    # Backend timestamps without an offset are UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def floor_hour(dt: datetime, tz: tzinfo | None = None) -> datetime:
    local = dt.astimezone(tz)
    return local.replace(minute=0, second=0, microsecond=0)


def format_local(dt: datetime | None, fmt: str = "%b %d %H:%M") -> str:
    if dt is None:
        return "—"
    return dt.astimezone().strftime(fmt)
