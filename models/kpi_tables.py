"""
Static KPI configuration: calibration ranges, alert thresholds, gradient
stops and the floor marker tokens expected in spatial element labels.

To add a KPI, extend ``models.records.Kpi`` and give it a threshold rule
here. A calibration entry is optional; KPIs without one use
``DEFAULT_CALIBRATION``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from models.records import Floor, Kpi
from models.schemas import CalibrationRange, Rgb, ThresholdRule

# ---------------------------------------------------------------------------
# Colour gradient
# ---------------------------------------------------------------------------
DEFAULT_CALIBRATION = CalibrationRange(min_value=0, max_value=100)

CALIBRATION_RANGES: Mapping[Kpi, CalibrationRange] = MappingProxyType(
    {
        Kpi.co2: CalibrationRange(min_value=350, max_value=1200),
        Kpi.humidity: CalibrationRange(min_value=20, max_value=80),
        Kpi.temperature: CalibrationRange(min_value=0, max_value=22),
        Kpi.occupancy: CalibrationRange(min_value=0, max_value=20),
    }
)

LOW_COLOR = Rgb.from_hex("#008000")  # css "green"
HIGH_COLOR = Rgb.from_hex("#ff0000")

# ---------------------------------------------------------------------------
# Alerting (forecast mode only)
# ---------------------------------------------------------------------------
THRESHOLD_RULES: Mapping[Kpi, ThresholdRule] = MappingProxyType(
    {
        Kpi.co2: ThresholdRule(ceiling=1000),
        Kpi.humidity: ThresholdRule(bounds=(30, 60)),
        Kpi.temperature: ThresholdRule(bounds=(17, 23)),
        Kpi.occupancy: ThresholdRule(ceiling=50),
        Kpi.space_util: ThresholdRule(bounds=(0, 30)),
    }
)

# ---------------------------------------------------------------------------
# Spatial model label conventions
# ---------------------------------------------------------------------------
FLOOR_MARKERS: Mapping[Floor, str] = MappingProxyType(
    {
        Floor.first: "ground",
        Floor.second: "first",
    }
)

HIGHLIGHT_MARKER = "ball"
STRUCTURE_COLOR = Rgb.from_hex("#d3d3d3")  # css "lightgray"
ELEMENT_OPACITY = 0.7
