"""Conversions between the logical field canvas, rendered pixels and PDF points.

Field positions are stored in a fixed 800 unit wide logical space so the same
record renders at any zoom level. The logical height follows the page aspect
ratio (``page_height / page_width * 800``). PDF page space has its origin at
the bottom-left corner while the logical space starts top-left, so converting
to page space flips the vertical axis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from securesign.core.errors import InvalidGeometry

LOGICAL_WIDTH = 800.0
# Upper bound accepted for stored y values; tall pages can exceed 800 * ratio
# on the client before the page geometry is known.
MAX_LOGICAL_Y = 5000.0


@dataclass(frozen=True)
class PagePlacement:
    x: float
    y: float
    width: float
    height: float
    scale: float


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


def _require_finite(**values: float) -> None:
    for name, value in values.items():
        if value is None or not math.isfinite(value):
            raise InvalidGeometry(f"{name} must be a finite number.")


def _require_rendered_width(rendered_width: float) -> None:
    _require_finite(rendered_width=rendered_width)
    if rendered_width <= 0:
        raise InvalidGeometry("Rendered width must be greater than zero.")


def max_logical_y(page_width: float, page_height: float) -> float:
    """Logical height of a page, i.e. the largest y a field may start at."""
    _require_finite(page_width=page_width, page_height=page_height)
    if page_width <= 0 or page_height <= 0:
        raise InvalidGeometry("Page dimensions must be greater than zero.")
    return page_height / page_width * LOGICAL_WIDTH


def to_logical(px: float, rendered_width: float, max_y: float | None = None) -> float:
    """Convert a rendered pixel offset into logical units.

    Without ``max_y`` the value is treated as a horizontal offset and clamped to
    ``[0, 800]``; with it, as a vertical offset clamped to ``[0, max_y]``.
    """
    _require_rendered_width(rendered_width)
    _require_finite(px=px)
    logical = px * LOGICAL_WIDTH / rendered_width
    return clamp(logical, 0.0, LOGICAL_WIDTH if max_y is None else max_y)


def to_rendered(logical: float, rendered_width: float, max_y: float | None = None) -> float:
    """Convert logical units back into pixels for a surface ``rendered_width`` wide."""
    _require_rendered_width(rendered_width)
    _require_finite(logical=logical)
    bounded = clamp(logical, 0.0, LOGICAL_WIDTH if max_y is None else max_y)
    return bounded * rendered_width / LOGICAL_WIDTH


def to_page_space(
    *,
    x: float,
    y: float,
    width: float,
    height: float,
    page_width: float,
    page_height: float,
) -> PagePlacement:
    """Map a logical field box onto an unrotated PDF page.

    The returned ``y`` is the bottom-left corner of the box in PDF points.
    """
    _require_finite(x=x, y=y, width=width, height=height)
    limit_y = max_logical_y(page_width, page_height)
    scale = page_width / LOGICAL_WIDTH

    scaled_width = width * scale
    scaled_height = height * scale
    pdf_x = clamp(x, 0.0, LOGICAL_WIDTH) * scale
    pdf_y = page_height - clamp(y, 0.0, limit_y) * scale - scaled_height
    return PagePlacement(x=pdf_x, y=pdf_y, width=scaled_width, height=scaled_height, scale=scale)


def validate_field_geometry(
    *,
    page: int | None = None,
    x: float | None = None,
    y: float | None = None,
    width: float | None = None,
    height: float | None = None,
) -> None:
    """Reject out of range values for whichever attributes are provided."""
    if page is not None:
        if isinstance(page, bool) or int(page) != page or page < 1:
            raise InvalidGeometry("Page must be an integer of at least 1.")
    provided = {
        name: value
        for name, value in (("x", x), ("y", y), ("width", width), ("height", height))
        if value is not None
    }
    _require_finite(**provided)
    if x is not None and not 0 <= x <= LOGICAL_WIDTH:
        raise InvalidGeometry("X coordinate out of bounds.")
    if y is not None and not 0 <= y <= MAX_LOGICAL_Y:
        raise InvalidGeometry("Y coordinate out of bounds.")
    if width is not None and width <= 0:
        raise InvalidGeometry("Width must be positive.")
    if height is not None and height <= 0:
        raise InvalidGeometry("Height must be positive.")
