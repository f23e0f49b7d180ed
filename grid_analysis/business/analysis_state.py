"""
Analysis State Component
This module keeps the per-image manual analysis state: cached images,
dimensions, current lines, last server result and the dirty/busy flags.
"""

import logging
import contextlib
import threading
from typing import Dict, Iterator, Optional, TYPE_CHECKING
from dataclasses import dataclass, field

from ..core.coordinate_system import CoordinateTransformer, ImageDimensions, LineSet
from ..core.dirty_tracker import DirtyTracker

if TYPE_CHECKING:
    from .api_integration import ServerResult

logger = logging.getLogger(__name__)

@dataclass
class AnalysisState:
    """Manual analysis state of one image."""
    original_image: Optional[str] = None   # data URL, cached verbatim
    blurred_image: Optional[str] = None    # data URL, cached verbatim
    dimensions: Optional[ImageDimensions] = None
    current_lines: LineSet = field(default_factory=LineSet)
    last_server_result: Optional['ServerResult'] = None
    dirty: bool = True
    busy: bool = False

class AnalysisStateStore:
    """
    Mapping from image id to AnalysisState.

    States are created lazily and only removed by clear(). Lines are always
    replaced as a whole so readers never observe a partial update. The busy flag
    is advisory and does not serialize callers.
    """

    def __init__(self, dirty_tracker: Optional[DirtyTracker] = None,
                 transformer: Optional[CoordinateTransformer] = None):
        self.transformer = transformer or CoordinateTransformer()
        self.dirty_tracker = dirty_tracker or DirtyTracker(self.transformer)
        self._states: Dict[int, AnalysisState] = {}

    def get_or_create(self, image_id: int) -> AnalysisState:
        """
        Get the state of an image, inserting an empty one if needed.

        Args:
            image_id: Image identifier

        Returns:
            The stored state (same object on every call until cleared)
        """
        state = self._states.get(image_id)
        if state is None:
            state = AnalysisState()
            self._states[image_id] = state
            logger.debug(f"Created analysis state for image {image_id}")
        return state

    def get(self, image_id: int) -> Optional[AnalysisState]:
        """Get the state of an image without creating it."""
        return self._states.get(image_id)

    def set_lines(self, image_id: int, line_set: LineSet) -> AnalysisState:
        """
        Replace the current lines of an image and recompute its dirty flag.

        Args:
            image_id: Image identifier
            line_set: New line configuration

        Returns:
            Updated state
        """
        state = self.get_or_create(image_id)
        state.current_lines = line_set
        state.dirty = self.dirty_tracker.is_dirty(state)
        logger.debug(f"Lines updated for image {image_id}: "
                     f"{len(line_set.vertical)} vertical, {len(line_set.horizontal)} horizontal, "
                     f"dirty={state.dirty}")
        return state

    def set_dimensions(self, image_id: int, dimensions: ImageDimensions) -> AnalysisState:
        """Record the pixel extents of an image."""
        state = self.get_or_create(image_id)
        state.dimensions = dimensions
        state.dirty = self.dirty_tracker.is_dirty(state)
        return state

    def record_server_result(self, image_id: int, result: 'ServerResult') -> AnalysisState:
        """
        Store a server result and resynchronize the lines from it.

        The lines echoed by the server are authoritative: when dimensions are
        known, current_lines is rebuilt from the result's interior lines.

        Args:
            image_id: Image identifier
            result: Result returned or restored from the server

        Returns:
            Updated state
        """
        state = self.get_or_create(image_id)
        state.last_server_result = result

        if state.dimensions is not None:
            state.current_lines = self.transformer.to_relative(
                result.vertical_lines,
                result.horizontal_lines,
                state.dimensions
            )

        state.dirty = self.dirty_tracker.is_dirty(state)
        logger.info(f"Server result {result.result_id} stored for image {image_id} (dirty={state.dirty})")
        return state

    @contextlib.contextmanager
    def busy(self, image_id: int) -> Iterator[AnalysisState]:
        """Mark an image busy for the duration of a remote call."""
        state = self.get_or_create(image_id)
        state.busy = True
        try:
            yield state
        finally:
            state.busy = False

    def clear(self, image_id: int) -> None:
        """Drop all state for an image."""
        if self._states.pop(image_id, None) is not None:
            logger.info(f"Cleared analysis state for image {image_id}")

    def image_ids(self):
        """Ids of all images with state."""
        return list(self._states.keys())

    def __contains__(self, image_id: int) -> bool:
        return image_id in self._states

    def __len__(self) -> int:
        return len(self._states)

_default_store: Optional[AnalysisStateStore] = None
_default_store_lock = threading.Lock()

def get_default_store() -> AnalysisStateStore:
    """Process-wide store, created on first use."""
    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = AnalysisStateStore()
        return _default_store
