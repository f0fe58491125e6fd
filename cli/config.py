from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from settings import get_settings

DEFAULT_LOAD_TIMEOUT = 30.0


@dataclass(frozen=True)
class CLIConfig:
    historical_source: str
    forecast_source: str
    load_timeout: float = DEFAULT_LOAD_TIMEOUT
    log_level: str = "INFO"


def load_config(
    historical_source: Optional[str] = None,
    forecast_source: Optional[str] = None,
    load_timeout: Optional[float] = None,
    verbose: bool = False,
) -> CLIConfig:
    """Command-line overrides layered on top of the environment settings."""
    settings = get_settings()
    timeout = load_timeout if load_timeout is not None and load_timeout > 0 else None
    return CLIConfig(
        historical_source=historical_source or settings.historical_source,
        forecast_source=forecast_source or settings.forecast_source,
        load_timeout=timeout or DEFAULT_LOAD_TIMEOUT,
        log_level="DEBUG" if verbose else settings.log_level,
    )
