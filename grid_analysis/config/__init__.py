"""
Configuration Package for Grid Analysis
This package provides centralized configuration management for the grid analysis components.
"""

from .api_config import (
    get_api_config,
    get_endpoint_url,
    APIEnvironment,
    DEFAULT_ENDPOINTS,
    IO_ENDPOINTS,
)

from .analysis_config import (
    get_analysis_config,
    DEFAULT_ANALYSIS_CONFIG,
)

__all__ = [
    # API Configuration
    'get_api_config',
    'get_endpoint_url',
    'APIEnvironment',
    'DEFAULT_ENDPOINTS',
    'IO_ENDPOINTS',

    # Analysis Configuration
    'get_analysis_config',
    'DEFAULT_ANALYSIS_CONFIG',
]
