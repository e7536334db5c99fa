"""PixelBuffer - fixed-size ARGB pixel store backed by a numpy array.

Layout: ``uint8`` array of shape ``(height, width, 4)``; the last axis holds
A, R, G, B. Flattened row-major this is the ``width*height*4`` byte list the
compositor expects inside a ``DrawImageCommand``.

Writes outside the buffer are ignored rather than raised: callers clip by
drawing, not by checking.
"""

from __future__ import annotations

import math
from typing import Any, List, Sequence

import numpy as np

from .errors import InvalidRect
from .graphics import MAGENTA, PLACEHOLDER, Color, ColorLike, Rect, RectLike, as_color, as_rect

__all__ = ["PixelBuffer"]


def _argb(color: ColorLike) -> np.ndarray:
    return np.array(as_color(color).argb(), dtype=np.uint8)


class PixelBuffer:
    """Owned ARGB pixel store with bounds-checked writes.

    Also serves as the image type for ``Window.draw_image``.
    """

    def __init__(self, width: int, height: int, fill: ColorLike = PLACEHOLDER):
        width = int(width)
        height = int(height)
        if width < 0 or height < 0:
            raise ValueError(f"buffer size must be non-negative: {width}x{height}")
        self.width = width
        self.height = height
        self._pixels = np.empty((height, width, 4), dtype=np.uint8)
        self._pixels[:, :] = _argb(fill)

    # ── Constructors ─────────────────────────────────────────────

    @classmethod
    def from_argb(cls, width: int, height: int, data: Sequence[int]) -> "PixelBuffer":
        """Build from a flat A,R,G,B byte sequence (the wire ``data`` field)."""
        arr = np.asarray(data, dtype=np.uint8)
        if arr.size != width * height * 4:
            raise ValueError(f"expected {width * height * 4} bytes for {width}x{height}, got {arr.size}")
        buf = cls(width, height)
        buf._pixels[:] = arr.reshape((height, width, 4))
        return buf

    @classmethod
    def from_pil(cls, image: Any) -> "PixelBuffer":
        """Build from a Pillow image (converted to RGBA first)."""
        rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        height, width = rgba.shape[:2]
        buf = cls(width, height)
        buf._pixels[:] = rgba[..., [3, 0, 1, 2]]
        return buf

    def to_pil(self) -> Any:
        """Return a Pillow ``RGBA`` image with the buffer contents."""
        from PIL import Image

        return Image.fromarray(np.ascontiguousarray(self._pixels[..., [1, 2, 3, 0]]))

    # ── Pixel access ─────────────────────────────────────────────

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def set_pixel(self, x: int, y: int, color: ColorLike) -> None:
        """Write one pixel; out-of-bounds coordinates are silently ignored."""
        if not self.in_bounds(x, y):
            return
        self._pixels[int(y), int(x)] = _argb(color)

    def get_pixel(self, x: int, y: int) -> Color:
        if not self.in_bounds(x, y):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        a, r, g, b = (int(v) for v in self._pixels[int(y), int(x)])
        return Color(r, g, b, a)

    # ── Drawing ──────────────────────────────────────────────────

    def draw_rect(self, rect: RectLike, color: ColorLike) -> None:
        """Fill every in-bounds pixel of ``[x, right) × [y, bottom)``."""
        rect = as_rect(rect)
        if not rect.is_valid():
            raise InvalidRect(f"invalid rect: {rect!r}")
        x0 = max(0, math.ceil(rect.x))
        y0 = max(0, math.ceil(rect.y))
        x1 = min(self.width, math.ceil(rect.right))
        y1 = min(self.height, math.ceil(rect.bottom))
        if x0 >= x1 or y0 >= y1:
            return
        self._pixels[y0:y1, x0:x1] = _argb(color)

    def draw_image(self, rect: RectLike, image: "PixelBuffer") -> None:
        """Unsupported: paints ``rect`` MAGENTA as a diagnostic.

        Real image composition only happens on the compositor, via
        ``DrawImageCommand``.
        """
        self.draw_rect(rect, MAGENTA)

    def fill(self, color: ColorLike) -> None:
        self._pixels[:, :] = _argb(color)

    def clear(self) -> None:
        """Reset every pixel to the placeholder colour."""
        self.fill(PLACEHOLDER)

    # ── Export ───────────────────────────────────────────────────

    @property
    def array(self) -> np.ndarray:
        """The underlying ``(height, width, 4)`` ARGB array (not a copy)."""
        return self._pixels

    @property
    def data(self) -> List[int]:
        """Flat A,R,G,B byte values as plain ints (JSON-serializable)."""
        return self._pixels.reshape(-1).tolist()

    def tobytes(self) -> bytes:
        return self._pixels.tobytes()

    def copy(self) -> "PixelBuffer":
        buf = PixelBuffer(self.width, self.height)
        buf._pixels[:] = self._pixels
        return buf

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and bool(np.array_equal(self._pixels, other._pixels))
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height})"
