"""Health poller tests using scripted actuator endpoints."""

from __future__ import annotations

import httpx
import pytest

from eventdash.health import ServiceHealthPoller
from eventdash.status import HealthStatus, HealthTarget, status_from_health_body, worst_status

A = HealthTarget(name="A", url="http://a.test/actuator/health", port=8080)
B = HealthTarget(name="B", url="http://b.test/actuator/health", port=8081)
C = HealthTarget(name="C", url="http://c.test/actuator/health", port=8082)


def _client(routes: dict[str, object]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        action = routes[request.url.host]
        if isinstance(action, Exception):
            raise action
        if callable(action):
            return action(request)
        return httpx.Response(200, json=action)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ({"status": "UP"}, HealthStatus.UP),
        ({"status": "up"}, HealthStatus.UP),
        ({"status": "DOWN"}, HealthStatus.DOWN),
        ({"status": "OUT_OF_SERVICE"}, HealthStatus.UNKNOWN),
        ({}, HealthStatus.UNKNOWN),
        (None, HealthStatus.UNKNOWN),
    ],
)
def test_status_from_health_body(body, expected) -> None:
    assert status_from_health_body(body) is expected


def test_worst_status() -> None:
    assert worst_status([]) is HealthStatus.UNKNOWN
    assert worst_status([HealthStatus.UP, HealthStatus.UNKNOWN]) is HealthStatus.UNKNOWN
    assert worst_status([HealthStatus.UP, HealthStatus.DOWN, HealthStatus.UNKNOWN]) is HealthStatus.DOWN


@pytest.mark.asyncio
async def test_failed_probe_is_isolated() -> None:
    routes = {
        "a.test": {"status": "UP"},
        "b.test": httpx.ReadTimeout("timed out"),
        "c.test": {"status": "DOWN"},
    }
    async with _client(routes) as client:
        poller = ServiceHealthPoller(client, [A, B, C])
        snapshot = await poller.poll_all()

    assert [s.target.name for s in snapshot.services] == ["A", "B", "C"]
    assert snapshot.get("A").status is HealthStatus.UP
    assert snapshot.get("B").status is HealthStatus.DOWN
    assert "timed out" in snapshot.get("B").detail
    assert snapshot.get("C").status is HealthStatus.DOWN
    assert snapshot.checked_at is not None
    assert poller.snapshot is snapshot


@pytest.mark.asyncio
async def test_non_2xx_and_unknown_status() -> None:
    routes = {
        "a.test": lambda r: httpx.Response(503, json={"status": "UP"}),
        "b.test": {"status": "OUT_OF_SERVICE"},
        "c.test": lambda r: httpx.Response(200, text="not json"),
    }
    async with _client(routes) as client:
        snapshot = await ServiceHealthPoller(client, [A, B, C]).poll_all()

    assert snapshot.get("A").status is HealthStatus.DOWN
    assert snapshot.get("A").detail == "HTTP 503"
    assert snapshot.get("B").status is HealthStatus.UNKNOWN
    assert snapshot.get("B").detail == "OUT_OF_SERVICE"
    assert snapshot.get("C").status is HealthStatus.UNKNOWN
    counts = snapshot.counts()
    assert counts[HealthStatus.DOWN] == 1
    assert counts[HealthStatus.UNKNOWN] == 2
    assert counts[HealthStatus.UP] == 0


@pytest.mark.asyncio
async def test_snapshot_is_replaced_wholesale() -> None:
    routes: dict[str, object] = {"a.test": httpx.ConnectError("refused")}
    async with _client(routes) as client:
        poller = ServiceHealthPoller(client, [A])
        assert poller.snapshot.get("A").status is HealthStatus.UNKNOWN

        first = await poller.poll_all()
        assert first.get("A").status is HealthStatus.DOWN

        routes["a.test"] = {"status": "UP"}
        second = await poller.poll_all()

    assert second is not first
    assert second.get("A").status is HealthStatus.UP
    assert second.get("A").detail == "UP"
    assert first.get("A").status is HealthStatus.DOWN


@pytest.mark.asyncio
async def test_listeners_get_each_snapshot() -> None:
    async with _client({"a.test": {"status": "UP"}}) as client:
        poller = ServiceHealthPoller(client, [A])
        seen = []
        poller.subscribe(seen.append)
        await poller.poll_all()
        await poller.poll_all()

    assert len(seen) == 2
    assert seen[-1] is poller.snapshot
