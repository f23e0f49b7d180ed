"""
Coordinate System Component
This module converts partition lines between normalized (0.0-1.0) positions and
integer pixel positions.
"""

import logging
import math
from typing import Tuple, List, Iterable, Sequence
from dataclasses import dataclass, field

from ..utils.error_handling import InvalidDimensions

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class ImageDimensions:
    """Pixel extents of an image."""
    width: int
    height: int

    def to_tuple(self) -> Tuple[int, int]:
        """Convert to (width, height)."""
        return (self.width, self.height)

@dataclass(frozen=True)
class Line:
    """A partition line in normalized coordinates.

    Only one axis is meaningful: relative_x for vertical lines, relative_y for
    horizontal ones.
    """
    id: str
    relative_x: float = 0.0
    relative_y: float = 0.0

@dataclass(frozen=True)
class LineSet:
    """Partition configuration of one image. Replaced as a whole, never edited in place."""
    horizontal: Tuple[Line, ...] = field(default_factory=tuple)
    vertical: Tuple[Line, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'horizontal', tuple(self.horizontal))
        object.__setattr__(self, 'vertical', tuple(self.vertical))

    @property
    def is_empty(self) -> bool:
        return not self.horizontal and not self.vertical

    @property
    def grid_shape(self) -> Tuple[int, int]:
        """(rows, cols) of the grid these lines produce."""
        return len(self.horizontal) + 1, len(self.vertical) + 1

@dataclass(frozen=True)
class PixelLines:
    """Integer pixel positions of vertical (x) and horizontal (y) lines."""
    vertical: Tuple[int, ...]
    horizontal: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, 'vertical', tuple(self.vertical))
        object.__setattr__(self, 'horizontal', tuple(self.horizontal))

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))

def is_interior(position: float, extent: int) -> bool:
    """True when a pixel position lies strictly between 0 and the extent."""
    return 0 < position < extent

def interior_positions(positions: Iterable[int], extent: int) -> List[int]:
    """Sorted positions with the image boundaries (and anything outside) removed."""
    return sorted(p for p in positions if is_interior(p, extent))

def validate_dimensions(dimensions: ImageDimensions) -> ImageDimensions:
    """
    Ensure both extents are positive.

    Raises:
        InvalidDimensions: if width or height is not positive
    """
    if dimensions is None:
        raise InvalidDimensions("Image dimensions not available")
    if dimensions.width <= 0 or dimensions.height <= 0:
        raise InvalidDimensions(
            f"Invalid image dimensions: {dimensions.width}x{dimensions.height}"
        )
    return dimensions

class CoordinateTransformer:
    """
    Handles conversions between normalized line positions and pixel positions.
    """

    def __init__(self, id_prefix: str = "restored"):
        """
        Initialize the coordinate transformer.

        Args:
            id_prefix: Prefix for synthetic ids of lines built from pixel positions
        """
        self.id_prefix = id_prefix

    def to_pixels(self, line_set: LineSet, dimensions: ImageDimensions) -> PixelLines:
        """
        Convert a line set to pixel positions including both image boundaries.

        Each relative value is scaled by the matching extent and rounded to the
        nearest pixel. The result is strictly ascending and always starts with 0
        and ends with the extent.

        Args:
            line_set: Lines in normalized coordinates
            dimensions: Image extents

        Returns:
            PixelLines with boundaries

        Raises:
            InvalidDimensions: if width or height is not positive
        """
        validate_dimensions(dimensions)

        vertical = [round_half_up(line.relative_x * dimensions.width) for line in line_set.vertical]
        horizontal = [round_half_up(line.relative_y * dimensions.height) for line in line_set.horizontal]

        return PixelLines(
            vertical=self._with_boundaries(vertical, dimensions.width),
            horizontal=self._with_boundaries(horizontal, dimensions.height),
        )

    def to_interior_pixels(self, line_set: LineSet, dimensions: ImageDimensions) -> PixelLines:
        """Pixel positions of the lines with both boundaries removed."""
        pixels = self.to_pixels(line_set, dimensions)
        return PixelLines(
            vertical=interior_positions(pixels.vertical, dimensions.width),
            horizontal=interior_positions(pixels.horizontal, dimensions.height),
        )

    def to_relative(self, vertical_pixels: Sequence[float], horizontal_pixels: Sequence[float],
                    dimensions: ImageDimensions) -> LineSet:
        """
        Convert pixel positions to a line set.

        Positions at or beyond the boundaries are dropped, the rest are divided by
        the matching extent. Boundaries are never reintroduced.

        Args:
            vertical_pixels: x positions
            horizontal_pixels: y positions
            dimensions: Image extents

        Returns:
            LineSet with fresh synthetic ids

        Raises:
            InvalidDimensions: if width or height is not positive
        """
        validate_dimensions(dimensions)

        vertical = [
            Line(id=f"v-{self.id_prefix}-{index}", relative_x=x / dimensions.width, relative_y=0.0)
            for index, x in enumerate(p for p in vertical_pixels if is_interior(p, dimensions.width))
        ]
        horizontal = [
            Line(id=f"h-{self.id_prefix}-{index}", relative_x=0.0, relative_y=y / dimensions.height)
            for index, y in enumerate(p for p in horizontal_pixels if is_interior(p, dimensions.height))
        ]

        return LineSet(horizontal=horizontal, vertical=vertical)

    def default_line_set(self, fractions: Sequence[float]) -> LineSet:
        """Build a line set with one vertical and one horizontal line per fraction."""
        vertical = [
            Line(id=f"v-default-{index + 1}", relative_x=fraction, relative_y=0.0)
            for index, fraction in enumerate(fractions)
        ]
        horizontal = [
            Line(id=f"h-default-{index + 1}", relative_x=0.0, relative_y=fraction)
            for index, fraction in enumerate(fractions)
        ]
        return LineSet(horizontal=horizontal, vertical=vertical)

    @staticmethod
    def _with_boundaries(positions: Iterable[int], extent: int) -> List[int]:
        inner = (p for p in positions if is_interior(p, extent))
        return sorted({0, extent, *inner})
