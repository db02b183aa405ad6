from __future__ import annotations

import json
from pathlib import Path

import pytest

from eventdash import cli
from eventdash.status import HealthSnapshot, HealthStatus, HealthTarget, ServiceHealth


def _snapshot(*statuses: HealthStatus) -> HealthSnapshot:
    return HealthSnapshot(
        services=tuple(
            ServiceHealth(target=HealthTarget(name=f"svc{i}", url=f"http://h/{i}"), status=s, detail=s.key)
            for i, s in enumerate(statuses)
        )
    )


def test_missing_config_is_a_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        cli.main(["--config", str(tmp_path / "nope.json"), "health"])


@pytest.mark.parametrize(
    ("statuses", "code"),
    [
        ((HealthStatus.UP, HealthStatus.UP), 0),
        ((HealthStatus.UP, HealthStatus.UNKNOWN), 1),
    ],
)
def test_health_exit_code(monkeypatch: pytest.MonkeyPatch, statuses, code: int) -> None:
    async def fake_health_once(cfg):
        return _snapshot(*statuses)

    monkeypatch.setattr(cli, "_health_once", fake_health_once)

    assert cli.main(["health"]) == code


def test_bad_config_returns_error_code(tmp_path: Path) -> None:
    path = tmp_path / "eventdash.json"
    path.write_text(json.dumps({"page_size": -1}), encoding="utf-8")

    assert cli.main(["--config", str(path), "health"]) == 2
