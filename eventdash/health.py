from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Sequence

import httpx

from .status import HealthSnapshot, HealthStatus, HealthTarget, ServiceHealth, status_from_health_body
from .timeutil import utc_now

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[HealthSnapshot], None]


async def probe(client: httpx.AsyncClient, target: HealthTarget) -> ServiceHealth:
    started = time.perf_counter()
    resp = await client.get(target.url)
    latency_ms = int((time.perf_counter() - started) * 1000)
    if not resp.is_success:
        return ServiceHealth(
            target=target,
            status=HealthStatus.DOWN,
            detail=f"HTTP {resp.status_code}",
            latency_ms=latency_ms,
        )

    try:
        body = resp.json()
    except ValueError:
        body = None
    status = status_from_health_body(body)
    raw = body.get("status") if isinstance(body, dict) else None
    detail = str(raw) if raw is not None else "no status reported"
    return ServiceHealth(target=target, status=status, detail=detail, latency_ms=latency_ms)


class ServiceHealthPoller:
    """Probes a fixed roster of health endpoints; one failed probe never affects another."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        targets: Sequence[HealthTarget],
        *,
        concurrency: int = 8,
    ) -> None:
        self._client = client
        self._targets = tuple(targets)
        self._concurrency = max(1, concurrency)
        self._snapshot = HealthSnapshot(
            services=tuple(
                ServiceHealth(target=t, status=HealthStatus.UNKNOWN, detail="not checked yet") for t in self._targets
            )
        )
        self._listeners: list[SnapshotListener] = []

    @property
    def targets(self) -> tuple[HealthTarget, ...]:
        return self._targets

    @property
    def snapshot(self) -> HealthSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def poll_all(self) -> HealthSnapshot:
        sem = asyncio.Semaphore(self._concurrency)

        async def _one(target: HealthTarget) -> ServiceHealth:
            async with sem:
                try:
                    return await probe(self._client, target)
                except Exception as e:
                    logger.debug("Probe %s failed: %s: %s", target.name, type(e).__name__, e)
                    return ServiceHealth(
                        target=target,
                        status=HealthStatus.DOWN,
                        detail=str(e) or type(e).__name__,
                    )

        results = await asyncio.gather(*[_one(t) for t in self._targets])
        self._snapshot = HealthSnapshot(services=tuple(results), checked_at=utc_now())
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Health listener %r failed", listener)
        return self._snapshot
