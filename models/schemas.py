"""Pydantic value objects exchanged between the core and its callers."""

from __future__ import annotations

from typing import Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from models.records import MONTH_NAMES, SELECT_ALL, Floor, Kpi, Mode

_UNIT_SUFFIXES = {
    Kpi.humidity: "%",
    Kpi.temperature: "°C",
}


class Selection(BaseModel):
    """Current mode, month, KPI and floor chosen by the presentation shell."""

    model_config = ConfigDict(frozen=True)

    mode: Mode = Mode.historical
    month: str = SELECT_ALL
    kpi: Kpi = Kpi.co2
    floor: Floor = Floor.all

    @field_validator("month")
    @classmethod
    def _canonical_month(cls, value: str) -> str:
        candidate = value.strip().casefold()
        if candidate == SELECT_ALL.casefold():
            return SELECT_ALL
        for name in MONTH_NAMES:
            if name.casefold() == candidate:
                return name
        raise ValueError(f"Unknown month {value!r}.")


class Rgb(BaseModel):
    """Colour with channels in the unit interval."""

    model_config = ConfigDict(frozen=True)

    r: float = Field(..., ge=0.0, le=1.0)
    g: float = Field(..., ge=0.0, le=1.0)
    b: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_hex(cls, value: str) -> "Rgb":
        digits = value.lstrip("#")
        if len(digits) != 6:
            raise ValueError(f"Expected a #rrggbb colour, got {value!r}.")
        channels = [int(digits[i : i + 2], 16) / 255 for i in (0, 2, 4)]
        return cls(r=channels[0], g=channels[1], b=channels[2])

    @computed_field  # type: ignore[misc]
    @property
    def hex(self) -> str:
        return "#" + "".join(f"{round(channel * 255):02x}" for channel in (self.r, self.g, self.b))


class CalibrationRange(BaseModel):
    """Value span mapped onto the colour gradient for one KPI."""

    model_config = ConfigDict(frozen=True)

    min_value: float
    max_value: float


class ThresholdRule(BaseModel):
    """Alert rule for one KPI: either a ceiling or an inclusive range."""

    model_config = ConfigDict(frozen=True)

    ceiling: Optional[float] = None
    bounds: Optional[Tuple[float, float]] = None

    @model_validator(mode="after")
    def _exactly_one_shape(self) -> "ThresholdRule":
        if (self.ceiling is None) == (self.bounds is None):
            raise ValueError("A threshold rule needs exactly one of ceiling or bounds.")
        if self.bounds is not None and self.bounds[0] > self.bounds[1]:
            raise ValueError("Threshold bounds must be ordered as (low, high).")
        return self

    def is_breached(self, value: float) -> bool:
        if self.ceiling is not None:
            return value > self.ceiling
        low, high = self.bounds  # type: ignore[misc]
        return value < low or value > high


class AlertCondition(BaseModel):
    """A forecast KPI value outside its threshold rule."""

    model_config = ConfigDict(frozen=True)

    kpi: Kpi
    value: float
    rule: ThresholdRule

    @computed_field  # type: ignore[misc]
    @property
    def message(self) -> str:
        unit = _UNIT_SUFFIXES.get(self.kpi, "")
        return f"{self.kpi.value} value ({self.value:.2f}{unit}). Needs attention."


class DerivedState(BaseModel):
    """Everything the shell renders for one selection, computed together."""

    model_config = ConfigDict(frozen=True)

    kpi_value: float = 0.0
    color: Rgb
    alert: Optional[AlertCondition] = None
