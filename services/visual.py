"""Map KPI values onto the colour gradient and floors onto label filters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from models.kpi_tables import (
    CALIBRATION_RANGES,
    DEFAULT_CALIBRATION,
    ELEMENT_OPACITY,
    FLOOR_MARKERS,
    HIGH_COLOR,
    HIGHLIGHT_MARKER,
    LOW_COLOR,
    STRUCTURE_COLOR,
)
from models.records import Floor, Kpi
from models.schemas import CalibrationRange, Rgb

VisibilityPredicate = Callable[[str, Optional[str]], bool]


@dataclass(frozen=True)
class ElementMaterial:
    color: Rgb
    opacity: float


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize(
    value: float,
    kpi: Kpi,
    ranges: Mapping[Kpi, CalibrationRange] = CALIBRATION_RANGES,
) -> float:
    """Position of ``value`` within the KPI's calibration range, in [0, 1].

    A degenerate range (min == max) acts as a step at ``min``.
    """
    calibration = ranges.get(kpi, DEFAULT_CALIBRATION)
    low, high = calibration.min_value, calibration.max_value
    if high == low:
        return 1.0 if value >= low else 0.0
    return _clamp((value - low) / (high - low))


def color_for(t: float, low: Rgb = LOW_COLOR, high: Rgb = HIGH_COLOR) -> Rgb:
    """Linear interpolation between ``low`` (t=0) and ``high`` (t=1)."""
    t = _clamp(t)
    return Rgb(
        r=_clamp(low.r + (high.r - low.r) * t),
        g=_clamp(low.g + (high.g - low.g) * t),
        b=_clamp(low.b + (high.b - low.b) * t),
    )


def visibility_predicate(floor: Floor) -> VisibilityPredicate:
    """Build the per-element filter for a floor selection.

    Elements belong to a floor when their own label or their parent's label
    contains the floor's marker token, compared case-insensitively.
    """
    marker = FLOOR_MARKERS.get(floor)
    if marker is None:
        return lambda _label, _parent=None: True

    def is_visible(label: str, parent_label: Optional[str] = None) -> bool:
        if marker in label.casefold():
            return True
        return parent_label is not None and marker in parent_label.casefold()

    return is_visible


def material_for(label: str, kpi_color: Rgb) -> ElementMaterial:
    """KPI indicator elements take the KPI colour; structure stays grey."""
    color = kpi_color if HIGHLIGHT_MARKER in label.casefold() else STRUCTURE_COLOR
    return ElementMaterial(color=color, opacity=ELEMENT_OPACITY)


def display_label(value: float, kpi: Kpi) -> str:
    return f"{value:.1f} {kpi.value}"
