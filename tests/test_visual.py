from __future__ import annotations

import pytest

from models.kpi_tables import ELEMENT_OPACITY, HIGH_COLOR, LOW_COLOR, STRUCTURE_COLOR
from models.records import Floor, Kpi
from models.schemas import CalibrationRange, Rgb
from services.visual import (
    color_for,
    display_label,
    material_for,
    normalize,
    visibility_predicate,
)


def test_normalize_uses_calibration_range() -> None:
    assert normalize(350, Kpi.co2) == 0.0
    assert normalize(1200, Kpi.co2) == 1.0
    assert normalize(775, Kpi.co2) == pytest.approx(0.5)


def test_normalize_defaults_to_zero_hundred_without_entry() -> None:
    assert normalize(25, Kpi.space_util) == pytest.approx(0.25)


def test_normalize_is_clamped_and_monotonic() -> None:
    values = [-1e9, -50, 0, 10, 349, 350, 600, 1199, 1200, 5000, 1e12]

    results = [normalize(value, Kpi.co2) for value in values]

    assert all(0.0 <= result <= 1.0 for result in results)
    assert results == sorted(results)


def test_normalize_degenerate_range_is_a_step() -> None:
    ranges = {Kpi.co2: CalibrationRange(min_value=500, max_value=500)}

    assert normalize(499, Kpi.co2, ranges) == 0.0
    assert normalize(500, Kpi.co2, ranges) == 1.0
    assert normalize(900, Kpi.co2, ranges) == 1.0


def test_color_for_endpoints() -> None:
    assert color_for(0) == LOW_COLOR
    assert color_for(1) == HIGH_COLOR
    assert LOW_COLOR.hex == "#008000"
    assert HIGH_COLOR.hex == "#ff0000"


def test_color_for_is_component_wise_linear() -> None:
    low = Rgb(r=0.0, g=0.5, b=1.0)
    high = Rgb(r=1.0, g=0.5, b=0.0)

    for t in (0.1, 0.25, 0.5, 0.9):
        color = color_for(t, low, high)
        assert color.r == pytest.approx(t)
        assert color.g == pytest.approx(0.5)
        assert color.b == pytest.approx(1.0 - t)


def test_color_for_clamps_out_of_range_input() -> None:
    assert color_for(-2) == LOW_COLOR
    assert color_for(3) == HIGH_COLOR


def test_visibility_all_accepts_everything() -> None:
    is_visible = visibility_predicate(Floor.all)

    assert is_visible("Roof", None)
    assert is_visible("FirstFloorBall", "Ground")


def test_visibility_first_floor_means_ground_marker() -> None:
    is_visible = visibility_predicate(Floor.first)

    assert is_visible("GroundFloorBall", "Ground")
    assert is_visible("Wall_012", "ground_floor_group")
    assert not is_visible("FirstFloorBall", None)
    assert not is_visible("FirstFloorBall", "FirstFloor")


def test_visibility_second_floor_means_first_marker() -> None:
    is_visible = visibility_predicate(Floor.second)

    assert is_visible("FirstFloorBall", None)
    assert is_visible("Slab", "FIRSTFLOOR")
    assert not is_visible("GroundFloorBall", "Ground")


def test_material_highlights_indicator_elements() -> None:
    kpi_color = color_for(0.5)

    ball = material_for("GroundFloorBall", kpi_color)
    wall = material_for("Wall_012", kpi_color)

    assert ball.color == kpi_color
    assert wall.color == STRUCTURE_COLOR
    assert ball.opacity == wall.opacity == ELEMENT_OPACITY


def test_display_label() -> None:
    assert display_label(1000, Kpi.co2) == "1000.0 CO2"
    assert display_label(21.46, Kpi.temperature) == "21.5 Temperature"
