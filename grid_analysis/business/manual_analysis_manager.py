"""
Manual Analysis Manager Component
This module drives the manual grid analysis of images: it keeps each image's
state in sync with the remote analysis service and derives table data from it.
"""

import logging
from typing import Dict, List, Optional, Any, Callable, Sequence
from dataclasses import dataclass, field

from ..config import get_analysis_config
from ..core.coordinate_system import CoordinateTransformer, LineSet, round_half_up, validate_dimensions
from ..core.grid_aggregator import (
    Category,
    CategoryMeanResult,
    CellRect,
    GridAggregator,
    GridSummary,
    SelectedCell,
)
from ..utils.error_handling import GridAnalysisError, LinesNotConfigured, ValidationError
from .analysis_state import AnalysisState, AnalysisStateStore, get_default_store
from .api_integration import (
    CategorizedMeanResponse,
    ImageStorageClient,
    RemoteAnalysisGateway,
    ServerResult,
)

logger = logging.getLogger(__name__)

@dataclass
class TableLayout:
    """Data needed to (re)build the results table of an image."""
    rows: int
    cols: int
    summary: Optional[GridSummary] = None
    cell_selections: Dict[str, str] = field(default_factory=dict)
    success: bool = True

class ManualAnalysisManager:
    """
    Business logic for manual grid analysis.

    The state store, the remote gateway and the image storage client are
    injected so tests can replace the network boundary.
    """

    def __init__(self, store: Optional[AnalysisStateStore] = None,
                 gateway: Optional[RemoteAnalysisGateway] = None,
                 storage: Optional[ImageStorageClient] = None,
                 aggregator: Optional[GridAggregator] = None,
                 config: Dict[str, Any] = None):
        """
        Initialize the manual analysis manager.

        Args:
            store: Per-image state store (process-wide store by default)
            gateway: Remote analysis service client
            storage: Image storage client
            aggregator: Grid aggregator
            config: Analysis configuration overrides
        """
        self.config = get_analysis_config(**(config or {}))
        self.store = store or get_default_store()
        self.gateway = gateway or RemoteAnalysisGateway()
        self.storage = storage or ImageStorageClient()
        self.transformer: CoordinateTransformer = self.store.transformer
        self.aggregator = aggregator or GridAggregator(self.transformer)

        # Callbacks
        self.callbacks: Dict[str, List[Callable]] = {
            'lines_updated': [],
            'result_updated': [],
        }

        logger.info("ManualAnalysisManager initialized")

    def get_state(self, image_id: int) -> AnalysisState:
        """Get the analysis state of an image, creating it if needed."""
        return self.store.get_or_create(image_id)

    def load_original_image(self, image_id: int) -> str:
        """
        Load the original image and capture its dimensions.

        Returns:
            The image as a data URL (cached after the first call)
        """
        state = self.get_state(image_id)
        if state.original_image:
            return state.original_image

        data_url = self.storage.get_image_data_url(image_id)
        state.original_image = data_url

        dimensions = self.storage.decode_dimensions(data_url)
        self.store.set_dimensions(image_id, dimensions)

        logger.info(f"Original image loaded for {image_id}: {dimensions.width}x{dimensions.height}")
        return data_url

    def load_blurred_image(self, image_id: int) -> str:
        """
        Load the blurred image computed by the analysis service.

        Returns:
            The blurred image as a data URL (cached after the first call)
        """
        state = self.get_state(image_id)
        if state.blurred_image:
            return state.blurred_image

        blur = self.config['gaussian_blur']
        state.blurred_image = self.gateway.get_blurred_image(
            image_id, blur['kernel_size'], blur['sigma_x'], blur['sigma_y']
        )
        logger.info(f"Blurred image loaded for {image_id}")
        return state.blurred_image

    def check_existing_result(self, image_id: int) -> Optional[ServerResult]:
        """
        Restore a previously stored result of an image.

        When the image dimensions are known the lines are restored from the
        result as well.

        Returns:
            The stored result or None when there is none
        """
        result = self.gateway.get_existing_result(image_id)
        if result is None:
            return None

        self.store.record_server_result(image_id, result)
        self._trigger_callbacks('result_updated', image_id, result)
        return result

    def initialize_default_lines(self, image_id: int) -> LineSet:
        """
        Place three vertical and three horizontal lines at 1/4, 1/2 and 3/4.

        Raises:
            InvalidDimensions: if the image dimensions are not known
        """
        state = self.get_state(image_id)
        validate_dimensions(state.dimensions)

        line_set = self.transformer.default_line_set(self.config['default_line_fractions'])
        self.update_lines(image_id, line_set)
        return line_set

    def update_lines(self, image_id: int, line_set: LineSet) -> AnalysisState:
        """Replace the lines of an image and recompute its dirty flag."""
        state = self.store.set_lines(image_id, line_set)
        self._trigger_callbacks('lines_updated', image_id, line_set)
        return state

    def has_unsaved_changes(self, image_id: int) -> bool:
        return self.get_state(image_id).dirty

    def calculate_mean_lines(self, image_id: int) -> ServerResult:
        """
        Compute the mean brightness of every cell on the server.

        Only interior lines are sent. The lines echoed back replace the current
        lines and the result becomes the image's last server result.

        Returns:
            The stored result

        Raises:
            InvalidDimensions: if the image dimensions are not known
            LinesNotConfigured: if either orientation has no lines
        """
        state = self.get_state(image_id)
        interior = self._interior_lines_for_request(state)

        with self.store.busy(image_id):
            response = self.gateway.compute_means(image_id, interior.vertical, interior.horizontal)

        result = response.to_server_result(state.dimensions)
        self.store.record_server_result(image_id, result)
        self._trigger_callbacks('result_updated', image_id, result)

        logger.info(f"Mean calculation completed for image {image_id}: result {result.result_id}")
        return result

    def calculate_categorized_mean(self, image_id: int, selected_cells: Sequence[SelectedCell],
                                   categories: Sequence[Category]) -> CategorizedMeanResponse:
        """
        Compute per-category aggregates on the server with the current lines.

        Raises:
            InvalidDimensions: if the image dimensions are not known
            LinesNotConfigured: if either orientation has no lines
        """
        state = self.get_state(image_id)
        interior = self._interior_lines_for_request(state)

        with self.store.busy(image_id):
            response = self.gateway.compute_categorized(
                image_id, interior.vertical, interior.horizontal, selected_cells, categories
            )

        logger.info(f"Categorized mean calculation completed for image {image_id}: "
                    f"{len(response.category_results)} categories")
        return response

    def aggregate_categories(self, image_id: int, selected_cells: Sequence[SelectedCell],
                             categories: Sequence[Category]) -> List[CategoryMeanResult]:
        """
        Aggregate categories locally from the last server result.

        Raises:
            ValidationError: if the image has no server result
        """
        result = self._require_server_result(image_id)
        return self.aggregator.aggregate_by_category(result.means, selected_cells, categories)

    def recalculate_all_means(self, image_id: int) -> GridSummary:
        """
        Row, column and overall means of the last server result.

        Raises:
            ValidationError: if the image has no server result
        """
        result = self._require_server_result(image_id)
        summary = self.aggregator.summarize(result.means)
        logger.debug(f"Recalculated means for image {image_id}: rows={summary.row_means}, "
                     f"cols={summary.col_means}, overall={summary.overall_mean}")
        return summary

    def get_cell_coordinates(self, image_id: int) -> List[List[CellRect]]:
        """Pixel rectangles of the current grid, empty when dimensions are unknown."""
        state = self.get_state(image_id)
        if state.dimensions is None:
            return []
        return self.aggregator.compute_cell_coordinates(state.current_lines, state.dimensions)

    def get_cell_dimensions(self, image_id: int) -> Dict[str, int]:
        """Average cell height and width of the current grid."""
        state = self.get_state(image_id)
        default = self.config['default_block_size']
        if state.dimensions is None:
            return {'y_block_size': default['y'], 'x_block_size': default['x']}

        rows, cols = state.current_lines.grid_shape
        return {
            'y_block_size': round_half_up(state.dimensions.height / rows),
            'x_block_size': round_half_up(state.dimensions.width / cols),
        }

    def get_table_headers(self, image_id: int) -> Dict[str, List[str]]:
        """Row and column header labels of the current grid."""
        rows, cols = self.get_state(image_id).current_lines.grid_shape
        return {
            'row_headers': [f"Row {i + 1}" for i in range(rows)],
            'col_headers': [f"Column {i + 1}" for i in range(cols)],
        }

    def restore_cell_selections(self, image_id: int) -> Dict[str, str]:
        """
        Rebuild the cell to category mapping from the stored categorized result.

        Returns:
            Mapping of 'row-col' to category id, empty when nothing is stored
        """
        categorized = self.gateway.get_categorized_result(image_id)
        if categorized is None:
            return {}

        selections = {}
        for category_result in categorized.category_results:
            for row, col in category_result.cells:
                selections[f"{row}-{col}"] = category_result.category_id

        logger.info(f"Restored {len(selections)} cell selections for image {image_id}")
        return selections

    def prepare_table(self, image_id: int) -> TableLayout:
        """
        Table data for an image that was just opened.

        Places default lines when the image has none. Never raises: on failure
        a fallback layout with success=False is returned.
        """
        try:
            state = self.get_state(image_id)
            if not state.current_lines.horizontal or not state.current_lines.vertical:
                logger.info(f"No lines found, initializing defaults for image {image_id}")
                self.initialize_default_lines(image_id)

            rows, cols = state.current_lines.grid_shape

            if state.last_server_result is None:
                return TableLayout(rows=rows, cols=cols)

            return TableLayout(
                rows=rows,
                cols=cols,
                summary=self.recalculate_all_means(image_id),
                cell_selections=self.restore_cell_selections(image_id),
            )

        except GridAnalysisError as e:
            logger.error(f"Error preparing table for image {image_id}: {e}")
            fallback = self.config['fallback_table_shape']
            return TableLayout(rows=fallback['rows'], cols=fallback['cols'], success=False)

    def clear(self, image_id: int):
        """Drop all analysis state of an image."""
        self.store.clear(image_id)

    def _interior_lines_for_request(self, state: AnalysisState):
        validate_dimensions(state.dimensions)
        if not state.current_lines.horizontal or not state.current_lines.vertical:
            raise LinesNotConfigured("Lines not configured")
        return self.transformer.to_interior_pixels(state.current_lines, state.dimensions)

    def _require_server_result(self, image_id: int) -> ServerResult:
        result = self.get_state(image_id).last_server_result
        if result is None or not result.means:
            raise ValidationError("No brightness data available for recalculation")
        return result

    def add_callback(self, event_type: str, callback: Callable):
        """
        Add a callback for analysis events.

        Args:
            event_type: 'lines_updated' or 'result_updated'
            callback: Called with (image_id, payload)
        """
        if event_type in self.callbacks:
            self.callbacks[event_type].append(callback)
        else:
            logger.warning(f"Unknown callback event type: {event_type}")

    def _trigger_callbacks(self, event_type: str, *args):
        for callback in self.callbacks.get(event_type, []):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")
