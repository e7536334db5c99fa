"""Geometry and colour value types shared by windows and pixel buffers."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .errors import InvalidRect

logger = logging.getLogger(__name__)

__all__ = [
    "Rect",
    "Size",
    "Color",
    "ColorLike",
    "RectLike",
    "as_color",
    "as_rect",
    "parse_hex_color",
    "WHITE",
    "BLACK",
    "RED",
    "GREEN",
    "BLUE",
    "MAGENTA",
    "TRANSPARENT",
    "PLACEHOLDER",
]


@dataclass(frozen=True)
class Size:
    w: int
    h: int

    def to_dict(self) -> Dict[str, int]:
        return {"w": self.w, "h": self.h}


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle; ``right``/``bottom`` are exclusive."""

    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def size(self) -> Size:
        return Size(int(self.w), int(self.h))

    def is_valid(self) -> bool:
        """False when any component is NaN or infinite."""
        return all(math.isfinite(v) for v in (self.x, self.y, self.w, self.h))

    def floored(self) -> "Rect":
        """Integer rect; the wire format has no fractional pixels."""
        if not self.is_valid():
            raise InvalidRect(f"invalid rect, cannot send: {self!r}")
        return Rect(math.floor(self.x), math.floor(self.y), math.floor(self.w), math.floor(self.h))

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.w, self.h)

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rect":
        return cls(data.get("x", 0), data.get("y", 0), data.get("w", 0), data.get("h", 0))


@dataclass(frozen=True)
class Color:
    """8-bit RGBA colour. Pixel storage orders it A, R, G, B."""

    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self) -> None:
        for name in ("r", "g", "b", "a"):
            v = getattr(self, name)
            if not 0 <= int(v) <= 255:
                raise ValueError(f"colour channel {name}={v} out of range 0..255")

    def argb(self) -> tuple:
        return (self.a, self.r, self.g, self.b)

    def to_dict(self) -> Dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Color":
        return cls(int(data["r"]), int(data["g"]), int(data["b"]), int(data.get("a", 255)))

    @classmethod
    def from_argb(cls, a: int, r: int, g: int, b: int) -> "Color":
        return cls(r, g, b, a)


WHITE = Color(255, 255, 255)
BLACK = Color(0, 0, 0)
RED = Color(255, 0, 0)
GREEN = Color(0, 255, 0)
BLUE = Color(0, 0, 255)
MAGENTA = Color(255, 0, 255)
TRANSPARENT = Color(255, 0, 255, 0)
# Fresh buffers start as bytes 255,255,0,255 (A,R,G,B): opaque magenta-ish
# placeholder so unpainted regions stand out.
PLACEHOLDER = Color.from_argb(255, 255, 0, 255)


def parse_hex_color(value: Optional[str]) -> Color:
    """Parse ``#rrggbb`` or ``#rrggbbaa``; anything else becomes MAGENTA."""
    if not value:
        return MAGENTA
    text = value.strip()
    if not text.startswith("#") or len(text) not in (7, 9):
        logger.warning(f"bad color {value!r}")
        return MAGENTA
    try:
        r = int(text[1:3], 16)
        g = int(text[3:5], 16)
        b = int(text[5:7], 16)
        a = int(text[7:9], 16) if len(text) == 9 else 255
    except ValueError:
        logger.warning(f"bad color {value!r}")
        return MAGENTA
    return Color(r, g, b, a)


ColorLike = Union[Color, Mapping[str, Any], str]
RectLike = Union[Rect, Mapping[str, Any], tuple, list]


def as_color(value: ColorLike) -> Color:
    """Accept a Color, a ``{r,g,b,a}`` mapping, or a hex string."""
    if isinstance(value, Color):
        return value
    if isinstance(value, str):
        return parse_hex_color(value)
    if isinstance(value, Mapping):
        return Color.from_dict(value)
    raise TypeError(f"cannot interpret {value!r} as a color")


def as_rect(value: RectLike) -> Rect:
    """Accept a Rect, a ``{x,y,w,h}`` mapping, or an ``(x, y, w, h)`` sequence."""
    if isinstance(value, Rect):
        return value
    if isinstance(value, Mapping):
        return Rect.from_dict(value)
    if isinstance(value, (tuple, list)) and len(value) == 4:
        return Rect(*value)
    raise TypeError(f"cannot interpret {value!r} as a rect")
