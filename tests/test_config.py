from __future__ import annotations

import json
from pathlib import Path

import pytest

from eventdash.config import API_BASE_URL_ENV, AppConfig, config_from_dict, load_config
from eventdash.exceptions import ConfigError


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(API_BASE_URL_ENV, raising=False)


def test_defaults_without_file() -> None:
    cfg = load_config(None)

    assert cfg == AppConfig()
    assert cfg.page_size == 50
    assert cfg.window_size == 100
    assert cfg.refresh_interval_seconds == 5.0
    assert cfg.health_interval_seconds == 10.0
    assert [t.port for t in cfg.services] == [8080, 8081, 8082, 8083, 8084]
    assert cfg.services[0].url == "http://localhost:8080/actuator/health"


def test_load_from_file(tmp_path: Path) -> None:
    path = tmp_path / "eventdash.json"
    path.write_text(
        json.dumps(
            {
                "api_base_url": "http://events.internal:9000/",
                "page_size": 25,
                "refresh_interval_seconds": 2.5,
                "auto_refresh": False,
                "services": [
                    {"name": "Query API", "port": 9000},
                    {"name": "Search", "url": "http://search.internal/health"},
                ],
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg.api_base_url == "http://events.internal:9000"
    assert cfg.page_size == 25
    assert cfg.refresh_interval_seconds == 2.5
    assert cfg.auto_refresh is False
    assert cfg.services[0].url == "http://localhost:9000/actuator/health"
    assert cfg.services[1].port is None
    assert cfg.services[1].url == "http://search.internal/health"


def test_env_overrides_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(API_BASE_URL_ENV, "http://override:8084")

    assert config_from_dict({"api_base_url": "http://file:1"}).api_base_url == "http://override:8084"


@pytest.mark.parametrize(
    "raw",
    [
        {"page_size": 0},
        {"refresh_interval_seconds": "soon"},
        {"services": []},
        {"services": [{"name": "x"}]},
        {"services": ["x"]},
        {"services": [{"name": "x", "port": "http"}]},
    ],
)
def test_invalid_values_raise(raw: dict) -> None:
    with pytest.raises(ConfigError):
        config_from_dict(raw)


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)
