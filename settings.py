from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from models.records import MAX_LOCATION, MIN_LOCATION

_SENSOR_URL_ENV = "SENSOR_API_BASE_URL"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_POLL_LOCATIONS_ENV = "POLL_LOCATIONS"
_POLLER_ENABLED_ENV = "POLLER_ENABLED"
_ALERT_DISPATCH_ENV = "ALERT_DISPATCH_ENABLED"
_READINGS_PATH_ENV = "READINGS_PERSISTENCE_PATH"
_USERS_PATH_ENV = "USERS_PERSISTENCE_PATH"
_FORECASTS_PATH_ENV = "FORECASTS_PERSISTENCE_PATH"
_PUSH_URL_ENV = "PUSH_GATEWAY_URL"
_PUSH_TOKEN_ENV = "PUSH_GATEWAY_TOKEN"
_PUSH_OUTBOX_ENV = "PUSH_OUTBOX_PATH"
_CACHE_TTL_ENV = "READING_CACHE_TTL_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_LOCATIONS: Tuple[int, ...] = tuple(range(MIN_LOCATION, MAX_LOCATION + 1))


@dataclass(frozen=True)
class Settings:
    sensor_api_base_url: str
    poll_interval_seconds: float
    poll_locations: Tuple[int, ...]
    poller_enabled: bool
    alert_dispatch_enabled: bool
    readings_persistence_path: Optional[str]
    users_persistence_path: Optional[str]
    forecasts_persistence_path: Optional[str]
    push_gateway_url: Optional[str]
    push_gateway_token: Optional[str]
    push_outbox_path: Optional[str]
    reading_cache_ttl_seconds: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_locations(default: Tuple[int, ...]) -> Tuple[int, ...]:
    """Parse ``"1-21"`` or ``"1,3,5"``; anything malformed falls back to the default."""
    value = os.getenv(_POLL_LOCATIONS_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        if "-" in candidate and "," not in candidate:
            start_raw, end_raw = candidate.split("-", 1)
            start, end = int(start_raw), int(end_raw)
            parsed = tuple(range(start, end + 1))
        else:
            parsed = tuple(
                sorted({int(part) for part in candidate.split(",") if part.strip()})
            )
    except ValueError:
        return default
    if not parsed or any(not MIN_LOCATION <= location <= MAX_LOCATION for location in parsed):
        return default
    return parsed


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        sensor_api_base_url=_read_str_env(
            _SENSOR_URL_ENV, "http://34.132.171.41:8000/api/aqms_data/"
        ),
        poll_interval_seconds=_read_positive_float(_POLL_INTERVAL_ENV, 300.0),
        poll_locations=_read_locations(DEFAULT_LOCATIONS),
        poller_enabled=_read_bool(_POLLER_ENABLED_ENV, True),
        alert_dispatch_enabled=_read_bool(_ALERT_DISPATCH_ENV, True),
        readings_persistence_path=_read_optional_env(
            _READINGS_PATH_ENV, "./tmp/epa_monitors_data.json"
        ),
        users_persistence_path=_read_optional_env(_USERS_PATH_ENV, "./tmp/users.json"),
        forecasts_persistence_path=_read_optional_env(
            _FORECASTS_PATH_ENV, "./tmp/air_quality_forecasts.json"
        ),
        push_gateway_url=_read_optional_env(_PUSH_URL_ENV, None),
        push_gateway_token=_read_optional_env(_PUSH_TOKEN_ENV, None),
        push_outbox_path=_read_optional_env(_PUSH_OUTBOX_ENV, "./tmp/push_outbox.jsonl"),
        reading_cache_ttl_seconds=_read_positive_float(_CACHE_TTL_ENV, 300.0),
        log_level=_read_log_level("INFO"),
    )
