"""
Dirty Tracker Component
Detects when the local line configuration of an image has diverged from the
configuration its last server result was computed for.
"""

import logging
from typing import TYPE_CHECKING, Optional

from .coordinate_system import CoordinateTransformer, interior_positions

if TYPE_CHECKING:
    from ..business.analysis_state import AnalysisState

logger = logging.getLogger(__name__)

class DirtyTracker:
    """Pure comparison of current interior pixel lines against the last synced ones."""

    def __init__(self, transformer: Optional[CoordinateTransformer] = None):
        self.transformer = transformer or CoordinateTransformer()

    def is_dirty(self, state: 'AnalysisState') -> bool:
        """
        Check whether the state has unsynchronized line changes.

        Args:
            state: Analysis state of one image

        Returns:
            True when no server result exists, dimensions are unknown, or the
            interior lines differ in length or any element
        """
        result = state.last_server_result
        dimensions = state.dimensions
        if result is None or dimensions is None:
            return True

        current = self.transformer.to_interior_pixels(state.current_lines, dimensions)
        synced_vertical = interior_positions(result.vertical_lines, dimensions.width)
        synced_horizontal = interior_positions(result.horizontal_lines, dimensions.height)

        changed = (list(current.vertical) != synced_vertical or
                   list(current.horizontal) != synced_horizontal)

        if changed:
            logger.debug(f"Lines diverged: vertical {list(current.vertical)} vs {synced_vertical}, "
                         f"horizontal {list(current.horizontal)} vs {synced_horizontal}")
        return changed
