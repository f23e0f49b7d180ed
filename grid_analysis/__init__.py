"""
Grid Analysis Package
This package implements manual grid analysis of images: a user places vertical
and horizontal lines over an image, the remote analysis service computes the
mean brightness of every cell, and the results are aggregated per row, column,
whole grid and user-defined category.

## Package Structure

### Configuration (config/)
- api_config.py: service endpoints, environments and request settings
- analysis_config.py: default lines, fallback table sizes, polling and import settings

### Core Components (core/)
Pure computations without I/O.

- coordinate_system.py: relative/pixel line conversion and the interior-line rule
- grid_aggregator.py: cell rectangles and row/column/overall/category means
- dirty_tracker.py: detection of lines that differ from the last server result

### Business Logic (business/)
- analysis_state.py: per-image state store
- api_integration.py: analysis, image storage and archive export clients
- data_processor.py: data URLs, upload files and dimension probing
- manual_analysis_manager.py: manual analysis of one image
- markup_importer.py: markup document import and export

### Utilities (utils/)
- error_handling.py: error taxonomy and user-friendly messages

## Usage

```python
from grid_analysis import ManualAnalysisManager, MarkupImporter, init_logging

init_logging()
manager = ManualAnalysisManager()
manager.load_original_image(42)
manager.check_existing_result(42)
table = manager.prepare_table(42)

importer = MarkupImporter(manager)
results = importer.import_files(['scan.json'], dataset_id=7)
```
"""

# Main components
from .core import CoordinateTransformer, GridAggregator, DirtyTracker
from .business import (
    AnalysisStateStore,
    RemoteAnalysisGateway,
    ImageStorageClient,
    ArchiveExportClient,
    ManualAnalysisManager,
    MarkupImporter,
    build_markup_document,
)
from .logging_config import init_logging

# Configuration
from .config import get_api_config, get_analysis_config

# Types
from .core import ImageDimensions, Line, LineSet, PixelLines, SelectedCell, Category, GridSummary
from .business import AnalysisState, ServerResult, ImportResult, ImportProgress
from .utils import (
    ErrorCategory,
    GridAnalysisError,
    ValidationError,
    InvalidDimensions,
    MalformedMarkup,
    DimensionProbeFailed,
    LinesNotConfigured,
    NetworkError,
    RemoteComputationError,
    OperationTimeout,
    describe_error,
)

__version__ = "1.0.0"

__all__ = [
    # Core Components
    'CoordinateTransformer',
    'GridAggregator',
    'DirtyTracker',

    # Business Logic
    'AnalysisStateStore',
    'RemoteAnalysisGateway',
    'ImageStorageClient',
    'ArchiveExportClient',
    'ManualAnalysisManager',
    'MarkupImporter',
    'build_markup_document',

    # Logging and Configuration
    'init_logging',
    'get_api_config',
    'get_analysis_config',

    # Types
    'ImageDimensions',
    'Line',
    'LineSet',
    'PixelLines',
    'SelectedCell',
    'Category',
    'GridSummary',
    'AnalysisState',
    'ServerResult',
    'ImportResult',
    'ImportProgress',

    # Errors
    'ErrorCategory',
    'GridAnalysisError',
    'ValidationError',
    'InvalidDimensions',
    'MalformedMarkup',
    'DimensionProbeFailed',
    'LinesNotConfigured',
    'NetworkError',
    'RemoteComputationError',
    'OperationTimeout',
    'describe_error',
]
