from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_BASE_URL_ENV = "SOR_BASE_URL"
_TIMEOUT_ENV = "SOR_TIMEOUT_SECONDS"
_DAY_START_ENV = "OPERATIONAL_DAY_START"
_POLL_INTERVAL_ENV = "COVERAGE_POLL_INTERVAL"
_STORE_NAME_ENV = "SOR_STORE_NAME"
_STORE_PATH_ENV = "SOR_STORE_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_DAY_START_MINUTES = 8 * 60


@dataclass(frozen=True)
class Settings:
    sor_base_url: str
    sor_timeout: float
    day_start_offset_minutes: int
    poll_interval: float
    store_name: str
    store_persistence_path: Optional[str]
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


def parse_day_start(value: str) -> int:
    """Convert an ``HH:MM`` wall-clock time into minutes after midnight."""
    hours_raw, sep, minutes_raw = value.strip().partition(":")
    if not sep:
        raise ValueError(f"Day start {value!r} is not in HH:MM format.")
    hours = int(hours_raw)
    minutes = int(minutes_raw)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Day start {value!r} is outside 00:00-23:59.")
    return hours * 60 + minutes


def _read_day_start(default: int) -> int:
    value = os.getenv(_DAY_START_ENV)
    if value is None or not value.strip():
        return default
    try:
        return parse_day_start(value)
    except ValueError:
        return default


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
        sor_base_url=_read_str_env(_BASE_URL_ENV, "http://localhost:8000").rstrip("/"),
        sor_timeout=_read_positive_float(_TIMEOUT_ENV, 30.0),
        day_start_offset_minutes=_read_day_start(DEFAULT_DAY_START_MINUTES),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 60.0),
        store_name=_read_str_env(_STORE_NAME_ENV, "readings"),
        store_persistence_path=_read_optional_env(
            _STORE_PATH_ENV, "./tmp/system_of_record.json"
        ),
        log_level=_read_log_level("INFO"),
    )
