"""Bounding box utilities.

Oracle output is only loosely schematized, so a discrepancy's box may arrive in
one of four shapes. ``normalize_box`` detects the shape and returns the canonical
``(ymin, xmin, ymax, xmax)`` tuple on the 0..1000 scale, or ``None`` when the
box cannot be trusted. The issue itself is always kept.
"""
import math
from collections.abc import Mapping
from typing import Any, List, Optional, Sequence, Tuple

from ..core.entities import Box2D

COORDINATE_SCALE = 1000
CORNER_KEYS = ("ymin", "xmin", "ymax", "xmax")


def scale_coordinate(value: Any) -> Optional[int]:
    """Map one raw coordinate onto the integer 0..1000 range.

    Values <= 1 are fractions of the image and are multiplied by 1000; larger
    values are taken as already on the 0..1000 scale. Returns ``None`` for
    anything that is not a finite number.
    """
    number = _to_float(value)
    if number is None:
        return None
    scaled = number * COORDINATE_SCALE if number <= 1 else number
    clamped = max(0.0, min(float(COORDINATE_SCALE), scaled))
    return int(math.floor(clamped + 0.5))


def raw_box(issue: Mapping) -> Optional[List[Any]]:
    """Pull the raw 4 values out of an issue, in ``[ymin, xmin, ymax, xmax]`` order.

    Shapes are tried in priority order: ``box_2d`` list, ``bbox`` list,
    ``bounding_box`` corner object, ``rect`` origin+extent object.
    """
    for key in ("box_2d", "bbox"):
        value = issue.get(key)
        if _is_quad(value):
            return list(value)

    corners = issue.get("bounding_box")
    if isinstance(corners, Mapping):
        return [corners.get(k) for k in CORNER_KEYS]

    rect = issue.get("rect")
    if isinstance(rect, Mapping):
        x, y = _to_float(rect.get("x")), _to_float(rect.get("y"))
        w, h = _to_float(rect.get("width")), _to_float(rect.get("height"))
        if None in (x, y, w, h):
            return [None] * 4
        return [y, x, y + h, x + w]

    return None


def normalize_box(issue: Mapping) -> Optional[Box2D]:
    """Canonical box for ``issue`` or ``None`` if absent or not fully numeric.

    Degenerate (zero-area or inverted) boxes are returned as-is.
    """
    values = raw_box(issue)
    if values is None:
        return None
    scaled = [scale_coordinate(v) for v in values]
    if any(v is None for v in scaled):
        return None
    return tuple(scaled)


def box_to_pixels(box: Box2D, width: int, height: int) -> Tuple[int, int, int, int]:
    """Convert a 0..1000 ``(ymin, xmin, ymax, xmax)`` box to pixel ``(x1, y1, x2, y2)``."""
    ymin, xmin, ymax, xmax = box
    x1 = int(round(xmin / COORDINATE_SCALE * width))
    y1 = int(round(ymin / COORDINATE_SCALE * height))
    x2 = int(round(xmax / COORDINATE_SCALE * width))
    y2 = int(round(ymax / COORDINATE_SCALE * height))
    return x1, y1, x2, y2


def box_area(box: Box2D) -> int:
    """Area on the 0..1000 grid; zero or negative extents count as 0."""
    ymin, xmin, ymax, xmax = box
    return max(0, ymax - ymin) * max(0, xmax - xmin)


def _is_quad(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 4


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
