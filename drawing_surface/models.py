from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

Point = Tuple[float, float]  # (x, y) in logical canvas pixels
Size = Tuple[int, int]  # (width, height)

LOGICAL_SIZE: Size = (800, 600)
BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_COLOR = "#4299E1"
DEFAULT_BRUSH_WIDTH = 5
MIN_BRUSH_WIDTH = 1
MAX_BRUSH_WIDTH = 50

# Crayon palette offered by the canvas screen.
PALETTE = (
    "#4299E1",  # blue
    "#48BB78",  # green
    "#F6E05E",  # yellow
    "#F56565",  # red
    "#9F7AEA",  # purple
    "#ED8936",  # orange
    "#38B2AC",  # teal
    "#FC8181",  # pink
)

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def normalize_color(color: str) -> str:
    """Return ``#RRGGBB`` upper-cased, or raise ValueError."""
    value = str(color or "").strip()
    if not _HEX_COLOR.match(value):
        raise ValueError(f"invalid color: {color!r} (expected #RRGGBB)")
    return value.upper()


def clamp_brush_width(px: float) -> int:
    """Round and clamp to [MIN_BRUSH_WIDTH, MAX_BRUSH_WIDTH]; NaN and non-numbers give the minimum."""
    try:
        value = float(px)
    except (TypeError, ValueError):
        return MIN_BRUSH_WIDTH
    if math.isnan(value):
        return MIN_BRUSH_WIDTH
    if math.isinf(value):
        return MAX_BRUSH_WIDTH if value > 0 else MIN_BRUSH_WIDTH
    width = int(round(value))
    return max(MIN_BRUSH_WIDTH, min(MAX_BRUSH_WIDTH, width))


class DrawingPhase(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"


class PointerKind(str, Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"
    LEAVE = "leave"


@dataclass
class ToolState:
    color: str = DEFAULT_COLOR
    brush_width: int = DEFAULT_BRUSH_WIDTH
    is_eraser: bool = False

    def stroke_color(self, background: str) -> str:
        return background if self.is_eraser else self.color


@dataclass(frozen=True)
class BoundingBox:
    """On-screen rectangle of the canvas element, in viewport pixels."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class PointerEvent:
    kind: PointerKind
    client_x: float
    client_y: float
    box: BoundingBox


@dataclass(frozen=True)
class Segment:
    start: Point
    end: Point
    color: str
    width: int
