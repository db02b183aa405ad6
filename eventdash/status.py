from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class HealthStatus(Enum):
    UP = ("UP", 0)
    UNKNOWN = ("UNKNOWN", 1)
    DOWN = ("DOWN", 2)

    def __init__(self, key: str, severity: int) -> None:
        self.key = key
        self.severity = severity


def worst_status(statuses: list[HealthStatus]) -> HealthStatus:
    if not statuses:
        return HealthStatus.UNKNOWN
    return max(statuses, key=lambda s: s.severity)


def status_from_health_body(body: Any) -> HealthStatus:
    raw = body.get("status") if isinstance(body, dict) else None
    s = str(raw or "").strip().upper()
    if s == "UP":
        return HealthStatus.UP
    if s == "DOWN":
        return HealthStatus.DOWN
    return HealthStatus.UNKNOWN


@dataclass(frozen=True)
class HealthTarget:
    name: str
    url: str
    port: int | None = None


@dataclass(frozen=True)
class ServiceHealth:
    target: HealthTarget
    status: HealthStatus
    detail: str
    latency_ms: int | None = None


@dataclass(frozen=True)
class HealthSnapshot:
    services: tuple[ServiceHealth, ...] = ()
    checked_at: datetime | None = None

    def get(self, name: str) -> ServiceHealth | None:
        return next((s for s in self.services if s.target.name == name), None)

    @property
    def worst(self) -> HealthStatus:
        return worst_status([s.status for s in self.services])

    def counts(self) -> dict[HealthStatus, int]:
        c = Counter(s.status for s in self.services)
        return {st: c.get(st, 0) for st in HealthStatus}
