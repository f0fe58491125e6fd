"""Domain records and enumerations shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

MONTH_NAMES: Tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

SELECT_ALL = "Select All"

MONTH_OPTIONS: Tuple[str, ...] = (SELECT_ALL, *MONTH_NAMES)


class Kpi(str, Enum):
    """Metrics the engine can aggregate."""

    co2 = "CO2"
    humidity = "Humidity"
    temperature = "Temperature"
    occupancy = "Occupancy"
    space_util = "SpaceUtil"


class Mode(str, Enum):
    """Operating modes: recorded history or the forecast table."""

    historical = "Historical"
    forecast = "Forecast"


class Floor(str, Enum):
    """Floor filter offered by the presentation shell."""

    all = "all"
    first = "1st"
    second = "2nd"


class SourceKind(str, Enum):
    historical = "historical"
    forecast = "forecast"


def _fold(name: str) -> str:
    return name.replace("_", "").casefold()


@dataclass(frozen=True, slots=True)
class Reading:
    """A historical sensor reading parsed from the IAQ export."""

    co2: int = 0
    humidity: int = 0
    temperature: int = 0
    occupancy: int = 0
    space_util: int = 0
    month: Optional[str] = None
    source_date: Optional[str] = None

    def value_for(self, name: str) -> object:
        """Return the numeric field matching ``name`` case-insensitively."""
        attribute = _READING_FIELDS.get(_fold(name))
        if attribute is None:
            return None
        return getattr(self, attribute)


_READING_FIELDS = {
    _fold(field): field
    for field in ("co2", "humidity", "temperature", "occupancy", "space_util")
}


@dataclass(frozen=True, slots=True)
class ForecastReading:
    """One forecast period, kept as the raw column -> text mapping."""

    values: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def value_for(self, name: str) -> object:
        if name in self.values:
            return self.values[name]
        folded = _fold(name)
        for key, value in self.values.items():
            if _fold(key) == folded:
                return value
        return None


ReadingSet = Tuple[Reading, ...]
ForecastReadingSet = Tuple[ForecastReading, ...]
