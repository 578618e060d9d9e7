from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image, ImageColor, ImageDraw

from .models import BACKGROUND_COLOR, LOGICAL_SIZE, Segment, Size

PNG_MIME = "image/png"


class RasterSurface:
    """Fixed-size RGB bitmap plus the draw context strokes are rendered with."""

    def __init__(self, size: Size = LOGICAL_SIZE, background: str = BACKGROUND_COLOR) -> None:
        width, height = int(size[0]), int(size[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid surface size: {size!r}")
        self.size: Size = (width, height)
        self.image = Image.new("RGB", self.size, ImageColor.getrgb(background))
        self._draw = ImageDraw.Draw(self.image)

    def fill(self, color: str) -> None:
        self._draw.rectangle((0, 0, self.size[0] - 1, self.size[1] - 1), fill=ImageColor.getrgb(color))

    def draw_segment(self, segment: Segment) -> None:
        rgb = ImageColor.getrgb(segment.color)
        (x0, y0), (x1, y1) = segment.start, segment.end
        self._draw.line((x0, y0, x1, y1), fill=rgb, width=segment.width)
        if segment.width > 1:
            # Round caps/joins: a disc of the brush diameter at each end.
            r = segment.width / 2.0
            for cx, cy in ((x0, y0), (x1, y1)):
                self._draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=rgb)

    def getpixel(self, xy: Tuple[int, int]) -> Tuple[int, int, int]:
        return self.image.getpixel(xy)

    def to_png_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()

    def to_data_url(self) -> str:
        b64 = base64.b64encode(self.to_png_bytes()).decode("ascii")
        return f"data:{PNG_MIME};base64,{b64}"


def decode_data_url(data_url: str) -> bytes:
    """Return the raw bytes of a base64 data URL (or bare base64 string)."""
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    return base64.b64decode(payload)
