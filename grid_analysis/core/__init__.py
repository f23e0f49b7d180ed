"""
Core Components Package for Grid Analysis
Pure computations: coordinate conversion, grid aggregation and dirty tracking.
"""

from .coordinate_system import (
    CoordinateTransformer,
    ImageDimensions,
    Line,
    LineSet,
    PixelLines,
    is_interior,
    interior_positions,
    round_half_up,
    validate_dimensions,
)
from .grid_aggregator import (
    GridAggregator,
    GridSummary,
    CellRect,
    SelectedCell,
    Category,
    CategoryMeanResult,
    to_brightness_array,
)
from .dirty_tracker import DirtyTracker

__all__ = [
    # Coordinate System
    'CoordinateTransformer',
    'ImageDimensions',
    'Line',
    'LineSet',
    'PixelLines',
    'is_interior',
    'interior_positions',
    'round_half_up',
    'validate_dimensions',

    # Grid Aggregation
    'GridAggregator',
    'GridSummary',
    'CellRect',
    'SelectedCell',
    'Category',
    'CategoryMeanResult',
    'to_brightness_array',

    # Dirty Tracking
    'DirtyTracker',
]
