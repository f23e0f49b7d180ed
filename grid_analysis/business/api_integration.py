"""
API Integration Component
This module handles all communication with the remote manual analysis service,
the image storage service and the dataset archive service.

No request is retried automatically. Transport failures raise NetworkError,
failures reported by a server raise RemoteComputationError, and "not found"
lookups return None.
"""

import logging
import json
import time
from typing import Dict, List, Tuple, Optional, Any, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
import requests
from requests import Response, Session

from ..config import get_api_config, get_analysis_config, get_endpoint_url
from ..core.coordinate_system import ImageDimensions, round_half_up
from ..core.grid_aggregator import Category, CategoryMeanResult, SelectedCell
from ..utils.error_handling import (
    DimensionProbeFailed,
    NetworkError,
    OperationTimeout,
    RemoteComputationError,
    format_error_detail,
)
from .data_processor import ImageFile, bytes_to_data_url, parse_data_url, probe_dimensions

logger = logging.getLogger(__name__)

@dataclass
class ServerResult:
    """A mean computation persisted by the analysis service."""
    result_id: int
    image_id: int
    vertical_lines: List[int]
    horizontal_lines: List[int]
    means: List[List[Optional[float]]]
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_stored(cls, data: Dict[str, Any]) -> 'ServerResult':
        """Build from the stored-result representation of GET /result/{id}."""
        parameters = data.get('parameters') or {}
        return cls(
            result_id=data['id'],
            image_id=data['image_id'],
            vertical_lines=[round_half_up(x) for x in parameters.get('vertical_lines', [])],
            horizontal_lines=[round_half_up(y) for y in parameters.get('horizontal_lines', [])],
            means=data.get('brightness_data') or [],
            image_width=parameters.get('image_width'),
            image_height=parameters.get('image_height'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )

@dataclass
class MeanLinesResponse:
    """Response of a full-grid mean computation."""
    success: bool
    message: str
    means: List[List[Optional[float]]]
    image_id: int
    result_id: int
    vertical_lines: List[int]
    horizontal_lines: List[int]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MeanLinesResponse':
        return cls(
            success=bool(data.get('success', True)),
            message=data.get('message', ''),
            means=data.get('means') or [],
            image_id=data.get('image_id'),
            result_id=data.get('result_id'),
            vertical_lines=[round_half_up(x) for x in data.get('vertical_lines') or []],
            horizontal_lines=[round_half_up(y) for y in data.get('horizontal_lines') or []],
        )

    def to_server_result(self, dimensions: Optional[ImageDimensions] = None) -> ServerResult:
        """Convert to the persisted-result form."""
        now = datetime.now().isoformat()
        return ServerResult(
            result_id=self.result_id,
            image_id=self.image_id,
            vertical_lines=list(self.vertical_lines),
            horizontal_lines=list(self.horizontal_lines),
            means=self.means,
            image_width=dimensions.width if dimensions else None,
            image_height=dimensions.height if dimensions else None,
            created_at=now,
            updated_at=now,
        )

@dataclass
class CategorizedMeanResponse:
    """Response of a category aggregation."""
    success: bool
    message: str
    image_id: int
    result_id: int
    all_cells_mean: float = 0.0
    category_results: List[CategoryMeanResult] = field(default_factory=list)
    overall_mean: float = 0.0
    vertical_lines: List[int] = field(default_factory=list)
    horizontal_lines: List[int] = field(default_factory=list)
    total_cells: int = 0
    selected_cells_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CategorizedMeanResponse':
        return cls(
            success=bool(data.get('success', True)),
            message=data.get('message', ''),
            image_id=data.get('imageId'),
            result_id=data.get('resultId'),
            all_cells_mean=data.get('allCellsMean') or 0,
            category_results=[CategoryMeanResult.from_dict(item) for item in data.get('categoryResults') or []],
            overall_mean=data.get('overallMean') or 0,
            vertical_lines=[round_half_up(x) for x in data.get('verticalLines') or []],
            horizontal_lines=[round_half_up(y) for y in data.get('horizontalLines') or []],
            total_cells=data.get('totalCells') or 0,
            selected_cells_count=data.get('selectedCellsCount') or 0,
        )

@dataclass
class UploadResult:
    """Result of an image upload."""
    success: bool
    message: str
    image_id: Optional[int] = None

class BaseAPIClient:
    """
    Shared HTTP plumbing: session, URL construction, error mapping and statistics.
    """

    base_url_key = 'base_url'
    endpoints_key = 'endpoints'

    def __init__(self, base_url: str = None, config: Dict[str, Any] = None,
                 session: Optional[Session] = None):
        """
        Initialize the API client.

        Args:
            base_url: Base URL overriding the configured one
            config: Configuration overrides passed to get_api_config
            session: HTTP session to use (a new requests.Session by default)
        """
        self.config = get_api_config(**(config or {}))
        self.base_url = (base_url or self.config[self.base_url_key]).rstrip('/')
        self.endpoints = self.config.get(self.endpoints_key, {})
        self.timeout = self.config.get('timeout', 30.0)

        self.session = session or Session()
        self.session.headers.update(self.config.get('headers', {}))
        self.session.verify = self.config.get('verify_ssl', True)

        # Statistics
        self.request_count = 0
        self.error_count = 0
        self.last_request_time: Optional[float] = None

        logger.info(f"{type(self).__name__} initialized for {self.base_url}")

    def url_for(self, endpoint_key: str, **path_params) -> str:
        """Full URL of a configured endpoint."""
        return get_endpoint_url(self.base_url, self.endpoints[endpoint_key], **path_params)

    def _make_request(self, method: str, endpoint_key: str, path_params: Optional[Dict[str, Any]] = None,
                      allowed_statuses: Sequence[int] = (), **kwargs) -> Response:
        """
        Send an HTTP request.

        Args:
            method: HTTP method
            endpoint_key: Key of the endpoint in the configuration
            path_params: Values for the endpoint template
            allowed_statuses: Error statuses returned to the caller instead of raised
            **kwargs: Passed to requests

        Returns:
            Response object

        Raises:
            NetworkError: on transport failures
            RemoteComputationError: on error statuses not in allowed_statuses
        """
        url = self.url_for(endpoint_key, **(path_params or {}))

        self.request_count += 1
        self.last_request_time = time.time()

        try:
            logger.debug(f"Making {method} request to {url}")
            response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            self.error_count += 1
            raise NetworkError(f"Request timeout after {self.timeout}s: {url}") from e
        except requests.exceptions.ConnectionError as e:
            self.error_count += 1
            raise NetworkError(f"Connection error: {url}") from e
        except requests.exceptions.RequestException as e:
            self.error_count += 1
            raise NetworkError(f"Request exception: {str(e)}") from e

        logger.debug(f"Response status: {response.status_code}")

        if response.status_code >= 400 and response.status_code not in allowed_statuses:
            self.error_count += 1
            error_msg = f"HTTP error! status: {response.status_code}"
            error_data: Dict[str, Any] = {}
            try:
                error_data = response.json()
                error_msg = format_error_detail(error_data) or error_msg
            except ValueError:
                logger.warning(f"Failed to parse error response from {url}")
            raise RemoteComputationError(error_msg, response.status_code, error_data)

        return response

    def _parse_response(self, response: Response) -> Dict[str, Any]:
        """
        Decode a JSON response body.

        Raises:
            RemoteComputationError: if the body is not JSON
        """
        try:
            return response.json()
        except ValueError as e:
            self.error_count += 1
            raise RemoteComputationError(f"Invalid JSON response: {str(e)}", response.status_code) from e

    @staticmethod
    def _check_success(data: Dict[str, Any], default_message: str, status_code: Optional[int] = None):
        """Raise when the service reports success: false."""
        if isinstance(data, dict) and data.get('success') is False:
            raise RemoteComputationError(data.get('message') or default_message, status_code, data)

    def get_statistics(self) -> Dict[str, Any]:
        """Request statistics of this client."""
        return {
            'base_url': self.base_url,
            'request_count': self.request_count,
            'error_count': self.error_count,
            'last_request_time': self.last_request_time,
        }

    def close(self):
        """Close the HTTP session."""
        self.session.close()

class RemoteAnalysisGateway(BaseAPIClient):
    """
    Client of the manual analysis service. All line positions are integer pixels.
    """

    def compute_means(self, image_id: int, vertical_lines: Sequence[int],
                      horizontal_lines: Sequence[int]) -> MeanLinesResponse:
        """
        Compute the mean brightness of every cell.

        Args:
            image_id: Image identifier
            vertical_lines: Interior x positions
            horizontal_lines: Interior y positions

        Returns:
            Means and the lines echoed by the server
        """
        payload = {
            'vertical_lines': [int(x) for x in vertical_lines],
            'horizontal_lines': [int(y) for y in horizontal_lines],
        }
        logger.info(f"Calculating means for image {image_id}: {payload}")

        response = self._make_request('POST', 'calculate_mean_lines', {'image_id': image_id}, json=payload)
        data = self._parse_response(response)
        self._check_success(data, 'Mean calculation failed', response.status_code)

        return MeanLinesResponse.from_dict(data)

    def compute_categorized(self, image_id: int, vertical_lines: Sequence[int], horizontal_lines: Sequence[int],
                            selected_cells: Sequence[SelectedCell],
                            categories: Sequence[Category]) -> CategorizedMeanResponse:
        """
        Compute per-category aggregates on the server.

        Args:
            image_id: Image identifier
            vertical_lines: Interior x positions
            horizontal_lines: Interior y positions
            selected_cells: Cell to category assignments
            categories: Categories

        Returns:
            Category aggregates with integer echoed lines
        """
        payload = {
            'verticalLines': [int(x) for x in vertical_lines],
            'horizontalLines': [int(y) for y in horizontal_lines],
            'selectedCells': [cell.to_dict() for cell in selected_cells],
            'selectionCategories': [category.to_dict() for category in categories],
            'imageID': image_id,
        }
        logger.info(f"Calculating categorized means for image {image_id}: "
                    f"{len(selected_cells)} cells in {len(categories)} categories")

        response = self._make_request('POST', 'calculate_categorized_mean', {'image_id': image_id}, json=payload)
        data = self._parse_response(response)
        self._check_success(data, 'Categorized mean calculation failed', response.status_code)

        return CategorizedMeanResponse.from_dict(data)

    def get_existing_result(self, image_id: int) -> Optional[ServerResult]:
        """
        Fetch the stored mean result of an image.

        Returns:
            The result, or None when the image has none yet
        """
        response = self._make_request('GET', 'result', {'image_id': image_id}, allowed_statuses=(404,))
        if response.status_code == 404:
            logger.info(f"No stored result for image {image_id}")
            return None

        return ServerResult.from_stored(self._parse_response(response))

    def get_categorized_result(self, image_id: int) -> Optional[CategorizedMeanResponse]:
        """
        Fetch the stored categorized result of an image.

        Returns:
            The flattened result, or None when none exists or the envelope is unexpected
        """
        response = self._make_request('GET', 'categorized_result', {'image_id': image_id},
                                      allowed_statuses=(404,))
        if response.status_code == 404:
            return None

        raw = self._parse_response(response)
        if not raw or not raw.get('success') or not isinstance(raw.get('result'), dict):
            logger.warning(f"Unexpected categorized result format for image {image_id}")
            return None

        result = raw['result']
        flattened = dict(result)
        flattened.update({
            'success': raw['success'],
            'message': f"Restored result from {raw.get('created_at')}",
            'imageId': raw.get('image_id'),
            'resultId': raw.get('result_id'),
        })
        return CategorizedMeanResponse.from_dict(flattened)

    def get_blurred_image(self, image_id: int, kernel_size: int = 3,
                          sigma_x: float = 0, sigma_y: float = 0) -> str:
        """
        Request a gaussian-blurred copy of an image.

        Returns:
            The blurred image as a data URL
        """
        payload = {'kernel_size': kernel_size, 'sigma_x': sigma_x, 'sigma_y': sigma_y}
        response = self._make_request('POST', 'gaussian_blur', {'image_id': image_id}, json=payload)
        content_type = response.headers.get('Content-Type', 'image/png').split(';')[0]
        return bytes_to_data_url(response.content, content_type)

class ImageStorageClient(BaseAPIClient):
    """
    Client of the image storage service.
    """

    base_url_key = 'io_base_url'
    endpoints_key = 'io_endpoints'

    def __init__(self, base_url: str = None, config: Dict[str, Any] = None,
                 session: Optional[Session] = None):
        super().__init__(base_url, config, session)
        self.upload_limits = self.config.get('upload', {})
        self._data_url_cache: Dict[int, str] = {}

    def upload_image(self, dataset_id: int, file: ImageFile, title: str,
                     description: Optional[str] = None) -> UploadResult:
        """
        Upload one image into a dataset.

        Args:
            dataset_id: Target dataset
            file: Image file
            title: Image title
            description: Optional description

        Returns:
            UploadResult with the new image id on success
        """
        form_data = json.dumps({
            'title': title,
            'dataset_id': dataset_id,
            'description': description or '',
        })

        response = self._make_request(
            'POST', 'upload_image',
            files={'file': file.to_upload_tuple()},
            data={'form_data': form_data},
        )
        data = self._parse_response(response)

        result = UploadResult(
            success=bool(data.get('success')),
            message=data.get('message', ''),
            image_id=(data.get('data') or {}).get('image_id'),
        )
        logger.info(f"Uploaded {file.filename} to dataset {dataset_id}: image_id={result.image_id}")
        return result

    def download_image(self, image_id: int) -> Tuple[bytes, str]:
        """
        Download the original bytes of an image.

        Returns:
            Tuple of (bytes, content type)
        """
        response = self._make_request('GET', 'download_image', {'image_id': image_id})
        content_type = response.headers.get('Content-Type', 'image/png').split(';')[0]
        return response.content, content_type

    def get_image_data_url(self, image_id: int) -> str:
        """Download an image as a data URL, cached per client."""
        if image_id in self._data_url_cache:
            return self._data_url_cache[image_id]

        content, content_type = self.download_image(image_id)
        data_url = bytes_to_data_url(content, content_type)
        self._data_url_cache[image_id] = data_url
        return data_url

    def clear_cache(self, image_id: Optional[int] = None):
        """Drop one cached image, or all of them."""
        if image_id is None:
            self._data_url_cache.clear()
        else:
            self._data_url_cache.pop(image_id, None)

    def validate_files(self, files: Sequence[ImageFile]) -> Tuple[bool, List[str]]:
        """
        Check files against the upload size and type limits.

        Returns:
            Tuple of (all valid, error messages)
        """
        max_size = self.upload_limits.get('max_file_size', 10 * 1024 * 1024)
        allowed_types = self.upload_limits.get('allowed_types', [])
        errors = []

        for file in files:
            if file.size > max_size:
                errors.append(f'File "{file.filename}" exceeds the maximum size of {max_size // (1024 * 1024)}MB')
            if allowed_types and file.content_type not in allowed_types:
                errors.append(f'File "{file.filename}" has an unsupported format: {file.content_type}')

        return len(errors) == 0, errors

    def decode_dimensions(self, encoded_image: str) -> ImageDimensions:
        """
        Decode an image data URL locally to read its width and height.

        Raises:
            DimensionProbeFailed: if the data cannot be decoded as an image
        """
        try:
            _, data = parse_data_url(encoded_image)
            return probe_dimensions(data)
        except ValueError as e:
            raise DimensionProbeFailed(str(e)) from e

class ArchiveExportClient(BaseAPIClient):
    """
    Starts dataset export tasks and waits for them to finish.
    """

    base_url_key = 'io_base_url'
    endpoints_key = 'io_endpoints'

    def __init__(self, base_url: str = None, config: Dict[str, Any] = None,
                 session: Optional[Session] = None, sleep: Callable[[float], None] = time.sleep,
                 analysis_config: Dict[str, Any] = None):
        super().__init__(base_url, config, session)
        polling = get_analysis_config(**(analysis_config or {}))['export_polling']
        self.poll_interval = polling['interval']
        self.max_attempts = polling['max_attempts']
        self._sleep = sleep

    def export_dataset(self, dataset_id: int) -> str:
        """
        Export a dataset archive.

        Returns:
            Download URL of the finished archive

        Raises:
            RemoteComputationError: if the task cannot be started or fails
            OperationTimeout: if the task does not complete within max_attempts polls
        """
        response = self._make_request('POST', 'archive_export', {'dataset_id': dataset_id})
        task_id = self._parse_response(response)['task_id']
        logger.info(f"Export task {task_id} started for dataset {dataset_id}")

        for attempt in range(self.max_attempts):
            status_response = self._make_request('GET', 'archive_status', {'task_id': task_id})
            status = self._parse_response(status_response)

            if status.get('status') == 'completed':
                logger.info(f"Export task {task_id} completed after {attempt + 1} polls")
                return self.url_for('archive_download', task_id=task_id)

            if status.get('status') == 'failed':
                raise RemoteComputationError(status.get('error') or 'Export task failed on server',
                                             status_response.status_code, status)

            self._sleep(self.poll_interval)

        raise OperationTimeout(f"Export task {task_id} timed out after {self.max_attempts} attempts")
