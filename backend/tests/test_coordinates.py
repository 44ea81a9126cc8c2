import math

import pytest

from securesign.core.errors import InvalidGeometry
from securesign.services.coordinates import (
    LOGICAL_WIDTH,
    max_logical_y,
    to_logical,
    to_page_space,
    to_rendered,
    validate_field_geometry,
)


@pytest.mark.parametrize("rendered_width", [320.0, 800.0, 1280.0])
def test_round_trip_within_rounding(rendered_width: float) -> None:
    for px in (0.0, 12.5, rendered_width / 3, rendered_width):
        logical = to_logical(px, rendered_width)
        assert math.isclose(to_rendered(logical, rendered_width), px, abs_tol=1e-6)


def test_to_logical_scales_to_fixed_width() -> None:
    assert to_logical(200, 400) == 400
    assert to_logical(400, 400) == LOGICAL_WIDTH


def test_to_logical_clamps_horizontal_and_vertical() -> None:
    assert to_logical(-10, 400) == 0
    assert to_logical(900, 400) == LOGICAL_WIDTH
    assert to_logical(900, 400, max_y=1000) == 1000
    assert to_logical(300, 400, max_y=1000) == 600


@pytest.mark.parametrize("rendered_width", [0, -5, float("nan"), float("inf")])
def test_invalid_rendered_width_rejected(rendered_width: float) -> None:
    with pytest.raises(InvalidGeometry):
        to_logical(10, rendered_width)
    with pytest.raises(InvalidGeometry):
        to_rendered(10, rendered_width)


def test_max_logical_y_follows_aspect_ratio() -> None:
    assert max_logical_y(600, 750) == 1000
    assert math.isclose(max_logical_y(612, 792), 792 / 612 * 800)


def test_page_space_scenario() -> None:
    placement = to_page_space(x=100, y=100, width=200, height=60, page_width=600, page_height=750)

    assert placement.scale == 0.75
    assert placement.x == 75
    assert placement.y == 630
    assert placement.width == 150
    assert placement.height == 45


def test_page_space_clamps_y_to_page_height() -> None:
    placement = to_page_space(x=0, y=4000, width=100, height=40, page_width=600, page_height=750)
    # y is limited to the logical page height (1000), so the box ends at the bottom edge
    assert placement.y == -30


@pytest.mark.parametrize(
    "values",
    [
        {"page": 0},
        {"page": 1.5},
        {"x": -1},
        {"x": 801},
        {"y": 5001},
        {"width": 0},
        {"height": -3},
        {"x": float("nan")},
    ],
)
def test_validate_field_geometry_rejects(values: dict) -> None:
    with pytest.raises(InvalidGeometry):
        validate_field_geometry(**values)


def test_validate_field_geometry_accepts_bounds() -> None:
    validate_field_geometry(page=1, x=0, y=5000, width=0.1, height=800)
    validate_field_geometry(x=800)
