from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_HISTORICAL_SOURCE_ENV = "KPI_HISTORICAL_SOURCE"
_FORECAST_SOURCE_ENV = "KPI_FORECAST_SOURCE"
_SOURCE_TIMEOUT_ENV = "KPI_SOURCE_TIMEOUT"
_LOADER_WORKERS_ENV = "KPI_LOADER_WORKERS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    historical_source: str
    forecast_source: str
    source_timeout: float
    loader_workers: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


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


def _read_worker_count(default: int) -> int:
    value = os.getenv(_LOADER_WORKERS_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


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
        historical_source=_read_str_env(
            _HISTORICAL_SOURCE_ENV, "./data/iaq_with_utilization.csv"
        ),
        forecast_source=_read_str_env(_FORECAST_SOURCE_ENV, "./data/forecast_data.csv"),
        source_timeout=_read_positive_float(_SOURCE_TIMEOUT_ENV, 10.0),
        loader_workers=_read_worker_count(2),
        log_level=_read_log_level("INFO"),
    )
