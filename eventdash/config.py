from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import ConfigError
from .status import HealthTarget

DEFAULT_API_BASE_URL = "http://localhost:8084"
API_BASE_URL_ENV = "EVENTDASH_API_BASE_URL"

DEFAULT_SERVICES: tuple[tuple[str, int], ...] = (
    ("Event Stream Service", 8080),
    ("Consumer Service", 8081),
    ("Streams Service", 8082),
    ("Elasticsearch Service", 8083),
    ("REST API Service", 8084),
)


def actuator_url(port: int, host: str = "localhost") -> str:
    return f"http://{host}:{port}/actuator/health"


def default_targets() -> list[HealthTarget]:
    return [HealthTarget(name=name, url=actuator_url(port), port=port) for name, port in DEFAULT_SERVICES]


@dataclass(frozen=True)
class AppConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    page_size: int = 50
    window_size: int = 100
    refresh_interval_seconds: float = 5.0
    health_interval_seconds: float = 10.0
    auto_refresh: bool = True
    request_timeout_seconds: float = 10.0
    services: list[HealthTarget] = field(default_factory=default_targets)


def _positive(raw: dict[str, Any], key: str, default: float, cast: type) -> Any:
    try:
        value = cast(raw.get(key, default))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number: {e}") from e
    if value <= 0:
        raise ConfigError(f"'{key}' must be positive, got {value}.")
    return value


def _parse_services(services_raw: Any) -> list[HealthTarget]:
    if not isinstance(services_raw, list) or not services_raw:
        raise ConfigError("'services' must be a non-empty list when present.")

    targets: list[HealthTarget] = []
    for i, svc in enumerate(services_raw):
        if not isinstance(svc, dict):
            raise ConfigError(f"Service config at index {i} must be an object.")
        name = str(svc.get("name", "")).strip()
        url = str(svc.get("url", "")).strip()
        port_raw = svc.get("port")
        port: int | None = None
        if port_raw is not None:
            try:
                port = int(port_raw)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Service config at index {i} has an invalid 'port'.") from e
        if not name or (not url and port is None):
            raise ConfigError(f"Service config at index {i} must include 'name' and one of 'url' or 'port'.")
        targets.append(HealthTarget(name=name, url=url or actuator_url(port), port=port))  # type: ignore[arg-type]
    return targets


def config_from_dict(raw: dict[str, Any]) -> AppConfig:
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be an object.")

    api_base_url = str(os.environ.get(API_BASE_URL_ENV) or raw.get("api_base_url") or DEFAULT_API_BASE_URL)
    services = _parse_services(raw["services"]) if "services" in raw else default_targets()

    return AppConfig(
        api_base_url=api_base_url.rstrip("/"),
        page_size=_positive(raw, "page_size", 50, int),
        window_size=_positive(raw, "window_size", 100, int),
        refresh_interval_seconds=_positive(raw, "refresh_interval_seconds", 5.0, float),
        health_interval_seconds=_positive(raw, "health_interval_seconds", 10.0, float),
        auto_refresh=bool(raw.get("auto_refresh", True)),
        request_timeout_seconds=_positive(raw, "request_timeout_seconds", 10.0, float),
        services=services,
    )


def load_config(path: Path | None) -> AppConfig:
    if path is None:
        return config_from_dict({})
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
    return config_from_dict(raw)
