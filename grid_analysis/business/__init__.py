"""
Business Logic Package for Grid Analysis
This package provides per-image state, remote service clients, manual analysis
orchestration and markup import/export.
"""

from .analysis_state import (
    AnalysisState,
    AnalysisStateStore,
    get_default_store,
)
from .api_integration import (
    BaseAPIClient,
    RemoteAnalysisGateway,
    ImageStorageClient,
    ArchiveExportClient,
    ServerResult,
    MeanLinesResponse,
    CategorizedMeanResponse,
    UploadResult,
)
from .data_processor import (
    ImageFile,
    parse_data_url,
    data_url_to_file,
    bytes_to_data_url,
    probe_dimensions,
)
from .manual_analysis_manager import (
    ManualAnalysisManager,
    TableLayout,
)
from .markup_importer import (
    MarkupImporter,
    MarkupDocument,
    MarkupMetadata,
    ImportResult,
    ImportProgress,
    parse_markup,
    build_markup_document,
)

__all__ = [
    # Analysis State
    'AnalysisState',
    'AnalysisStateStore',
    'get_default_store',

    # API Integration
    'BaseAPIClient',
    'RemoteAnalysisGateway',
    'ImageStorageClient',
    'ArchiveExportClient',
    'ServerResult',
    'MeanLinesResponse',
    'CategorizedMeanResponse',
    'UploadResult',

    # Data Processing
    'ImageFile',
    'parse_data_url',
    'data_url_to_file',
    'bytes_to_data_url',
    'probe_dimensions',

    # Manual Analysis
    'ManualAnalysisManager',
    'TableLayout',

    # Markup Import/Export
    'MarkupImporter',
    'MarkupDocument',
    'MarkupMetadata',
    'ImportResult',
    'ImportProgress',
    'parse_markup',
    'build_markup_document',
]
