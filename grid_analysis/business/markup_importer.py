"""
Markup Importer Component
This module reads and writes markup documents: a self-contained JSON file with
an embedded original and blurred image, pixel line positions and category
selections.

Importing a document uploads its image as a new image, restores its lines and
recomputes the full-grid means and the category aggregates.
"""

import logging
import os
from typing import Dict, List, Optional, Any, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaValidationError

from ..config import get_analysis_config
from ..core.coordinate_system import CoordinateTransformer
from ..core.grid_aggregator import Category, SelectedCell
from ..utils.error_handling import (
    GridAnalysisError,
    MalformedMarkup,
    RemoteComputationError,
    ValidationError,
    describe_error,
)
from .analysis_state import AnalysisState
from .api_integration import ImageStorageClient
from .data_processor import data_url_to_file
from .manual_analysis_manager import ManualAnalysisManager

logger = logging.getLogger(__name__)

class MarkupCell(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)
    category_id: str = Field(..., alias='categoryId')

class MarkupCategory(BaseModel):
    id: str
    name: str
    color: str

class MarkupMetadata(BaseModel):
    """Line and selection metadata of a markup document."""
    model_config = ConfigDict(populate_by_name=True)

    luminance: Optional[List[List[Optional[float]]]] = Field(
        None,
        description="Brightness matrix of the exported result"
    )
    vertical_lines: List[float] = Field(
        default_factory=list,
        alias='verticalLines',
        description="Vertical line x positions in pixels"
    )
    horizontal_lines: List[float] = Field(
        default_factory=list,
        alias='horizontalLines',
        description="Horizontal line y positions in pixels"
    )
    selected_cells: List[MarkupCell] = Field(default_factory=list, alias='selectedCells')
    selection_categories: List[MarkupCategory] = Field(default_factory=list, alias='selectionCategories')
    name: Optional[str] = None

class MarkupDocument(BaseModel):
    """A complete markup document."""
    model_config = ConfigDict(populate_by_name=True)

    original_image: str = Field(..., alias='originalImage', description="Original image as a data URL")
    blurred_image: Optional[str] = Field(None, alias='blurredImage', description="Blurred image as a data URL")
    metadata: MarkupMetadata

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def selected_cells(self) -> List[SelectedCell]:
        return [SelectedCell(row=cell.row, col=cell.col, category_id=cell.category_id)
                for cell in self.metadata.selected_cells]

    def categories(self) -> List[Category]:
        return [Category(id=category.id, name=category.name, color=category.color)
                for category in self.metadata.selection_categories]

@dataclass
class ImportResult:
    """Outcome of importing one file."""
    success: bool
    filename: str
    message: str
    image_id: Optional[int] = None

@dataclass
class ImportProgress:
    """Progress of a batch import."""
    completed: int
    total: int

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.completed / self.total * 100, 1)

def parse_markup(text: str) -> MarkupDocument:
    """
    Parse and validate a markup document.

    Raises:
        MalformedMarkup: if the text is not JSON or does not match the document schema
    """
    try:
        return MarkupDocument.model_validate_json(text)
    except SchemaValidationError as e:
        raise MalformedMarkup(f"Invalid markup document: {e.error_count()} error(s), "
                              f"first: {e.errors()[0].get('msg')}") from e

def build_markup_document(state: AnalysisState, selected_cells: Sequence[SelectedCell],
                          categories: Sequence[Category], name: Optional[str] = None,
                          transformer: Optional[CoordinateTransformer] = None) -> MarkupDocument:
    """
    Build an exportable markup document from an image's analysis state.

    Args:
        state: State with cached images, dimensions and a server result
        selected_cells: Cell to category assignments to export
        categories: Categories to export
        name: Document name (becomes the file name on import)
        transformer: Coordinate transformer

    Returns:
        The markup document

    Raises:
        ValidationError: if the state has no original image, dimensions or server result
    """
    if not state.original_image:
        raise ValidationError("No original image available for export")
    if state.dimensions is None or state.last_server_result is None:
        raise ValidationError("Image has no computed result to export")

    transformer = transformer or CoordinateTransformer()
    interior = transformer.to_interior_pixels(state.current_lines, state.dimensions)

    metadata = MarkupMetadata(
        luminance=state.last_server_result.means,
        vertical_lines=list(interior.vertical),
        horizontal_lines=list(interior.horizontal),
        selected_cells=[MarkupCell(row=cell.row, col=cell.col, category_id=cell.category_id)
                        for cell in selected_cells],
        selection_categories=[MarkupCategory(**category.to_dict()) for category in categories],
        name=name,
    )
    return MarkupDocument(
        original_image=state.original_image,
        blurred_image=state.blurred_image,
        metadata=metadata,
    )

class MarkupImporter:
    """
    Imports markup documents one at a time.

    Each import runs a fixed sequence of steps and stops at the first failing
    one. Failures before the upload leave nothing behind. Failures after it
    leave the uploaded image and its partial state in place.
    """

    def __init__(self, manager: ManualAnalysisManager, storage: Optional[ImageStorageClient] = None,
                 config: Dict[str, Any] = None):
        """
        Initialize the markup importer.

        Args:
            manager: Manual analysis manager driving the recomputation
            storage: Image storage client (the manager's by default)
            config: Analysis configuration overrides
        """
        self.manager = manager
        self.storage = storage or manager.storage
        self.config = get_analysis_config(**(config or {}))['import']
        self.transformer = CoordinateTransformer(id_prefix="imported")

    def import_document(self, document: MarkupDocument, dataset_id: int,
                        filename: Optional[str] = None) -> int:
        """
        Import one parsed markup document.

        Args:
            document: Markup document
            dataset_id: Dataset receiving the uploaded image
            filename: Upload file name (document name or a timestamped default)

        Returns:
            Id of the newly created image

        Raises:
            MalformedMarkup: if the embedded original image cannot be decoded
            DimensionProbeFailed: if the image dimensions cannot be read
            RemoteComputationError: if the upload or a computation fails
            NetworkError: on transport failures
        """
        filename = filename or document.metadata.name or self._default_filename()

        # 1. decode embedded image
        try:
            image_file = data_url_to_file(document.original_image, filename)
        except ValueError as e:
            raise MalformedMarkup(f"Failed to decode embedded image: {e}") from e

        # 2. upload
        title = os.path.splitext(filename)[0]
        upload = self.storage.upload_image(dataset_id, image_file, title)
        if not upload.success or upload.image_id is None:
            raise RemoteComputationError(upload.message or "Failed to upload image")
        image_id = upload.image_id

        # 3. cache embedded images
        state = self.manager.get_state(image_id)
        state.original_image = document.original_image
        state.blurred_image = document.blurred_image

        # 4. dimensions
        dimensions = self.storage.decode_dimensions(document.original_image)
        self.manager.store.set_dimensions(image_id, dimensions)

        # 5. lines
        line_set = self.transformer.to_relative(
            document.metadata.vertical_lines,
            document.metadata.horizontal_lines,
            dimensions
        )
        self.manager.update_lines(image_id, line_set)

        # 6. full-grid means
        self.manager.calculate_mean_lines(image_id)

        # 7. category aggregates
        self.manager.calculate_categorized_mean(image_id, document.selected_cells(), document.categories())

        logger.info(f"Imported {filename} as image {image_id} ({dimensions.width}x{dimensions.height})")
        return image_id

    def import_markup(self, text: str, dataset_id: int, filename: Optional[str] = None) -> ImportResult:
        """
        Import one markup document given as JSON text.

        Never raises for errors of the document itself; they are reported in the result.
        A successful result carries the upload file name (document name or a
        timestamped default); a failed one carries the source file name.
        """
        display_name = filename or 'markup'
        try:
            document = parse_markup(text)
            upload_name = document.metadata.name or self._default_filename()
            image_id = self.import_document(document, dataset_id, upload_name)
            return ImportResult(success=True, filename=upload_name,
                                message=f"Imported as image {image_id}", image_id=image_id)
        except ValidationError as e:
            logger.warning(f"Rejected {display_name}: {e}")
            return ImportResult(success=False, filename=display_name, message=str(e))
        except GridAnalysisError as e:
            logger.error(f"Import of {display_name} failed: {e}")
            return ImportResult(success=False, filename=display_name, message=describe_error(e))

    def import_files(self, paths: Sequence[str], dataset_id: int,
                     on_progress: Optional[Callable[[ImportProgress], None]] = None) -> List[ImportResult]:
        """
        Import markup files one after another.

        A failing file is reported in its result and does not stop the batch.
        Progress is reported after every file.

        Args:
            paths: Markup file paths
            dataset_id: Dataset receiving the uploaded images
            on_progress: Called with an ImportProgress after each file

        Returns:
            One ImportResult per path, in input order
        """
        results: List[ImportResult] = []
        total = len(paths)

        for index, path in enumerate(paths):
            filename = os.path.basename(path)
            try:
                with open(path, 'r', encoding=self.config['file_encoding']) as f:
                    text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to read {path}: {e}")
                results.append(ImportResult(success=False, filename=filename, message=f"Failed to read file: {e}"))
            else:
                results.append(self.import_markup(text, dataset_id, filename))

            if on_progress:
                on_progress(ImportProgress(completed=index + 1, total=total))

        succeeded = sum(1 for result in results if result.success)
        logger.info(f"Batch import finished: {succeeded}/{total} succeeded")
        return results

    def _default_filename(self) -> str:
        timestamp = int(datetime.now().timestamp() * 1000)
        return self.config['default_name_pattern'].format(timestamp=timestamp)
