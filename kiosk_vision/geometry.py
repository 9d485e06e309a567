"""
Value types for located text.

The recognition engine reports each word as a quadrilateral. Downstream
row/column grouping works on axis-aligned regions, so quads are reduced
to rectangles from their top-left and bottom-right corners. Rotation and
skew are dropped on purpose.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned integer rectangle in image pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def max_x(self) -> int:
        return self.x + self.width

    @property
    def max_y(self) -> int:
        return self.y + self.height

    def contains(self, other: "Rectangle") -> bool:
        """True if other lies entirely inside this rectangle."""
        return (other.x >= self.x and other.y >= self.y
                and other.max_x <= self.max_x and other.max_y <= self.max_y)

    @classmethod
    def of_image(cls, image) -> "Rectangle":
        h, w = image.shape[:2]
        return cls(0, 0, w, h)


@dataclass(frozen=True)
class BoundingQuad:
    """Four corners, clockwise starting from the top-left."""

    x1: float
    y1: float
    x2: float
    y2: float
    x3: float
    y3: float
    x4: float
    y4: float

    @property
    def corners(self) -> Tuple[Tuple[float, float], ...]:
        return ((self.x1, self.y1), (self.x2, self.y2),
                (self.x3, self.y3), (self.x4, self.y4))

    def to_rectangle(self) -> Rectangle:
        """
        Reduce the quad to an axis-aligned rectangle.

        Uses corner 1 as the origin and corner 3 as the opposite corner,
        rounding half up. A rotated word may not be tightly bounded.
        """
        return Rectangle(
            x=_round_half_up(self.x1),
            y=_round_half_up(self.y1),
            width=_round_half_up(self.x3 - self.x1),
            height=_round_half_up(self.y3 - self.y1),
        )


@dataclass(frozen=True)
class LocatedWord:
    """Lowercased recognized text and its rectangle."""

    text: str
    rectangle: Rectangle


@dataclass(frozen=True)
class LocatedLine:
    """A recognized line with its own rectangle and its words in order."""

    text: str
    rectangle: Optional[Rectangle]
    words: Tuple[LocatedWord, ...] = field(default_factory=tuple)
