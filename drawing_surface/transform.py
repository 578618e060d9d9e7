from __future__ import annotations

import math
from typing import Optional

from .models import BoundingBox, Point, Size


def _finite(*values: float) -> bool:
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False


def to_logical(client_x: float, client_y: float, box: BoundingBox, logical_size: Size) -> Optional[Point]:
    """
    Map viewport coordinates onto the fixed logical canvas.

    scale = logical / displayed on each axis; the offset from the box's
    top-left corner is multiplied by that scale. Returns None when the box is
    degenerate (zero/negative size) or any input is non-finite, so the caller
    can skip the segment.
    """
    logical_w, logical_h = logical_size
    if not _finite(client_x, client_y, box.left, box.top, box.width, box.height):
        return None
    if box.width <= 0 or box.height <= 0:
        return None
    scale_x = logical_w / float(box.width)
    scale_y = logical_h / float(box.height)
    x = (float(client_x) - float(box.left)) * scale_x
    y = (float(client_y) - float(box.top)) * scale_y
    if not _finite(x, y):
        return None
    return (x, y)
