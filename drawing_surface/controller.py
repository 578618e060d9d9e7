from __future__ import annotations

from typing import Callable, List, Optional

from .models import (
    BACKGROUND_COLOR,
    LOGICAL_SIZE,
    BoundingBox,
    DrawingPhase,
    Point,
    PointerEvent,
    PointerKind,
    Segment,
    Size,
    ToolState,
    clamp_brush_width,
    normalize_color,
)
from .raster import RasterSurface
from .transform import to_logical

SegmentListener = Callable[[Segment], None]


class DrawingSurfaceController:
    """
    Turns pointer/touch input into strokes on a fixed-resolution raster.

    Two states: IDLE and DRAWING. A down event anchors the stroke, every move
    while DRAWING renders one segment from the anchor to the new point and
    re-anchors, up/leave return to IDLE. Until a surface is attached every
    call is a no-op and exports return None.
    """

    def __init__(
        self,
        *,
        logical_size: Size = LOGICAL_SIZE,
        background: str = BACKGROUND_COLOR,
        tool: Optional[ToolState] = None,
    ) -> None:
        self.logical_size: Size = (int(logical_size[0]), int(logical_size[1]))
        self.background = normalize_color(background)
        self.tool = tool or ToolState()
        self.phase = DrawingPhase.IDLE
        self._surface: Optional[RasterSurface] = None
        self._last: Optional[Point] = None
        self._listeners: List[SegmentListener] = []

    # ------------------------------------------------------------------ #
    # Surface lifecycle
    # ------------------------------------------------------------------ #
    @property
    def attached(self) -> bool:
        return self._surface is not None

    @property
    def surface(self) -> Optional[RasterSurface]:
        return self._surface

    def attach(self, surface: Optional[RasterSurface] = None) -> RasterSurface:
        """Bind a surface (a blank one of the logical size by default)."""
        if surface is None:
            surface = RasterSurface(self.logical_size, self.background)
        elif surface.size != self.logical_size:
            raise ValueError(f"surface size {surface.size} does not match logical size {self.logical_size}")
        self._surface = surface
        self._reset_pointer()
        return surface

    def detach(self) -> None:
        self._surface = None
        self._reset_pointer()

    def add_listener(self, listener: SegmentListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SegmentListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------ #
    # Tool state
    # ------------------------------------------------------------------ #
    def select_color(self, color: str) -> None:
        if not self.attached:
            return
        self.tool.color = normalize_color(color)
        self.tool.is_eraser = False

    def set_brush_width(self, px: float) -> None:
        if not self.attached:
            return
        self.tool.brush_width = clamp_brush_width(px)

    def toggle_eraser(self) -> None:
        if not self.attached:
            return
        self.tool.is_eraser = not self.tool.is_eraser

    # ------------------------------------------------------------------ #
    # Pointer input
    # ------------------------------------------------------------------ #
    def pointer_down(self, client_x: float, client_y: float, box: BoundingBox) -> bool:
        if not self.attached:
            return False
        point = to_logical(client_x, client_y, box, self.logical_size)
        if point is None:
            return False
        self._last = point
        self.phase = DrawingPhase.DRAWING
        return True

    def pointer_move(self, client_x: float, client_y: float, box: BoundingBox) -> Optional[Segment]:
        if not self.attached or self.phase is not DrawingPhase.DRAWING or self._last is None:
            return None
        point = to_logical(client_x, client_y, box, self.logical_size)
        if point is None:
            return None
        segment = Segment(
            start=self._last,
            end=point,
            color=self.tool.stroke_color(self.background),
            width=self.tool.brush_width,
        )
        self._surface.draw_segment(segment)
        self._last = point
        for listener in list(self._listeners):
            listener(segment)
        return segment

    def pointer_up(self) -> None:
        if not self.attached:
            return
        self._reset_pointer()

    def handle(self, event: PointerEvent) -> Optional[Segment]:
        """Dispatch one pointer event; returns the segment drawn, if any."""
        if event.kind is PointerKind.DOWN:
            self.pointer_down(event.client_x, event.client_y, event.box)
            return None
        if event.kind is PointerKind.MOVE:
            return self.pointer_move(event.client_x, event.client_y, event.box)
        # UP and LEAVE both end the stroke.
        self.pointer_up()
        return None

    def _reset_pointer(self) -> None:
        self.phase = DrawingPhase.IDLE
        self._last = None

    # ------------------------------------------------------------------ #
    # Surface operations
    # ------------------------------------------------------------------ #
    def clear(self) -> None:
        if not self.attached:
            return
        self._surface.fill(self.background)

    def export_image(self) -> Optional[bytes]:
        if not self.attached:
            return None
        return self._surface.to_png_bytes()

    def export_data_url(self) -> Optional[str]:
        if not self.attached:
            return None
        return self._surface.to_data_url()
