"""
Shared fixtures for grid analysis tests: in-memory images and fakes for the
remote services.
"""

import io
import json
from typing import Dict, List, Optional

import pytest
from PIL import Image

from grid_analysis.business.analysis_state import AnalysisStateStore
from grid_analysis.business.api_integration import (
    CategorizedMeanResponse,
    MeanLinesResponse,
    UploadResult,
)
from grid_analysis.business.data_processor import bytes_to_data_url, parse_data_url, probe_dimensions
from grid_analysis.business.manual_analysis_manager import ManualAnalysisManager
from grid_analysis.core.grid_aggregator import CategoryMeanResult
from grid_analysis.utils.error_handling import DimensionProbeFailed


def make_png(width: int, height: int, color=(128, 128, 128)) -> bytes:
    """Encode a solid-color PNG."""
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format='PNG')
    return buffer.getvalue()


def make_png_data_url(width: int, height: int) -> str:
    return bytes_to_data_url(make_png(width, height), 'image/png')


class FakeGateway:
    """Remote analysis service double that echoes the lines it receives."""

    def __init__(self, cell_value: float = 10.0):
        self.cell_value = cell_value
        self.existing_result = None
        self.categorized_result = None
        self.mean_calls: List[Dict] = []
        self.categorized_calls: List[Dict] = []
        self.busy_during_call: List[bool] = []
        self.store: Optional[AnalysisStateStore] = None
        self.next_result_id = 500

    def compute_means(self, image_id, vertical_lines, horizontal_lines):
        self.mean_calls.append({
            'image_id': image_id,
            'vertical_lines': list(vertical_lines),
            'horizontal_lines': list(horizontal_lines),
        })
        if self.store is not None:
            self.busy_during_call.append(self.store.get(image_id).busy)

        rows, cols = len(horizontal_lines) + 1, len(vertical_lines) + 1
        self.next_result_id += 1
        return MeanLinesResponse(
            success=True,
            message='ok',
            means=[[self.cell_value] * cols for _ in range(rows)],
            image_id=image_id,
            result_id=self.next_result_id,
            vertical_lines=list(vertical_lines),
            horizontal_lines=list(horizontal_lines),
        )

    def compute_categorized(self, image_id, vertical_lines, horizontal_lines, selected_cells, categories):
        self.categorized_calls.append({
            'image_id': image_id,
            'vertical_lines': list(vertical_lines),
            'horizontal_lines': list(horizontal_lines),
            'selected_cells': list(selected_cells),
            'categories': list(categories),
        })
        results = []
        for category in categories:
            cells = [(c.row, c.col) for c in selected_cells if c.category_id == category.id]
            results.append(CategoryMeanResult(
                category_id=category.id,
                category_name=category.name,
                color=category.color,
                mean=self.cell_value if cells else 0.0,
                cell_count=len(cells),
                cells=cells,
            ))
        return CategorizedMeanResponse(
            success=True,
            message='ok',
            image_id=image_id,
            result_id=self.next_result_id,
            category_results=results,
            vertical_lines=list(vertical_lines),
            horizontal_lines=list(horizontal_lines),
        )

    def get_existing_result(self, image_id):
        return self.existing_result

    def get_categorized_result(self, image_id):
        return self.categorized_result

    def get_blurred_image(self, image_id, kernel_size=3, sigma_x=0, sigma_y=0):
        return make_png_data_url(4, 4)


class FakeImageStorage:
    """Image storage double handing out sequential image ids."""

    def __init__(self, first_id: int = 100):
        self.next_id = first_id
        self.uploads: List[Dict] = []
        self.images: Dict[int, str] = {}
        self.fail_uploads = False

    def upload_image(self, dataset_id, file, title, description=None):
        if self.fail_uploads:
            return UploadResult(success=False, message='Storage is full')
        image_id = self.next_id
        self.next_id += 1
        self.uploads.append({'dataset_id': dataset_id, 'file': file, 'title': title})
        return UploadResult(success=True, message='uploaded', image_id=image_id)

    def get_image_data_url(self, image_id):
        return self.images[image_id]

    def decode_dimensions(self, encoded_image):
        try:
            _, data = parse_data_url(encoded_image)
            return probe_dimensions(data)
        except ValueError as e:
            raise DimensionProbeFailed(str(e)) from e


def markup_text(original_image: str, vertical=(25, 50, 75), horizontal=(50,), name='scan.png',
                selected_cells=None, categories=None) -> str:
    """Serialize a markup document."""
    return json.dumps({
        'originalImage': original_image,
        'blurredImage': original_image,
        'metadata': {
            'luminance': None,
            'verticalLines': list(vertical),
            'horizontalLines': list(horizontal),
            'selectedCells': selected_cells if selected_cells is not None else [
                {'row': 0, 'col': 0, 'categoryId': 'bright'},
                {'row': 1, 'col': 3, 'categoryId': 'bright'},
            ],
            'selectionCategories': categories if categories is not None else [
                {'id': 'bright', 'name': 'Bright', 'color': '#ff0000'},
                {'id': 'dark', 'name': 'Dark', 'color': '#0000ff'},
            ],
            'name': name,
        },
    })


@pytest.fixture
def store():
    return AnalysisStateStore()


@pytest.fixture
def gateway(store):
    fake = FakeGateway()
    fake.store = store
    return fake


@pytest.fixture
def storage():
    return FakeImageStorage()


@pytest.fixture
def manager(store, gateway, storage):
    return ManualAnalysisManager(store=store, gateway=gateway, storage=storage)


@pytest.fixture
def image_100():
    """A 100x100 PNG as a data URL."""
    return make_png_data_url(100, 100)
