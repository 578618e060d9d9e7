"""
Drawing surface core: tool state, coordinate transform and the stroke pipeline.
"""

from .controller import DrawingSurfaceController, SegmentListener
from .models import (
    BACKGROUND_COLOR,
    DEFAULT_BRUSH_WIDTH,
    DEFAULT_COLOR,
    LOGICAL_SIZE,
    MAX_BRUSH_WIDTH,
    MIN_BRUSH_WIDTH,
    PALETTE,
    BoundingBox,
    DrawingPhase,
    PointerEvent,
    PointerKind,
    Segment,
    ToolState,
    clamp_brush_width,
    normalize_color,
)
from .raster import RasterSurface, decode_data_url
from .transform import to_logical

__all__ = [
    "BACKGROUND_COLOR",
    "BoundingBox",
    "DEFAULT_BRUSH_WIDTH",
    "DEFAULT_COLOR",
    "DrawingPhase",
    "DrawingSurfaceController",
    "LOGICAL_SIZE",
    "MAX_BRUSH_WIDTH",
    "MIN_BRUSH_WIDTH",
    "PALETTE",
    "PointerEvent",
    "PointerKind",
    "RasterSurface",
    "Segment",
    "SegmentListener",
    "ToolState",
    "clamp_brush_width",
    "decode_data_url",
    "normalize_color",
    "to_logical",
]
