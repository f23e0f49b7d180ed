"""
API Configuration Module
This module contains all endpoint, header and request settings used to talk to
the analysis and image storage services.
"""

from typing import Dict, Any
import os
from enum import Enum

class APIEnvironment(Enum):
    """API deployment environments."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

# Manual analysis service endpoints (relative to 'base_url')
DEFAULT_ENDPOINTS = {
    'calculate_mean_lines': '/calculate-mean-lines/{image_id}',
    'calculate_categorized_mean': '/calculate-categorized-mean/{image_id}',
    'result': '/result/{image_id}',
    'categorized_result': '/categorized-mean/{image_id}/result',
    'gaussian_blur': '/gaussian-blur/{image_id}',
}

# Image storage / archive endpoints (relative to 'io_base_url')
IO_ENDPOINTS = {
    'upload_image': '/image/upload',
    'download_image': '/image/download-image/{image_id}',
    'archive_export': '/archive/export/{dataset_id}',
    'archive_status': '/archive/status/{task_id}',
    'archive_download': '/archive/download/{task_id}',
}

# Environment-specific configurations
ENVIRONMENT_CONFIGS = {
    APIEnvironment.DEVELOPMENT: {
        'base_url': 'http://localhost:8000/api/v1/analysis/manual',
        'io_base_url': 'http://localhost:8000/api/v1/IO',
        'timeout': 30.0,
        'verify_ssl': False,
    },
    APIEnvironment.TESTING: {
        'base_url': 'http://test-server:8000/api/v1/analysis/manual',
        'io_base_url': 'http://test-server:8000/api/v1/IO',
        'timeout': 15.0,
        'verify_ssl': False,
    },
    APIEnvironment.PRODUCTION: {
        'base_url': 'https://analysis-server/api/v1/analysis/manual',
        'io_base_url': 'https://analysis-server/api/v1/IO',
        'timeout': 10.0,
        'verify_ssl': True,
    }
}

# Header Configuration
DEFAULT_HEADERS = {
    'Accept': 'application/json',
    'User-Agent': 'GridAnalysis-Client/1.0',
}

# Upload validation limits
UPLOAD_CONFIG = {
    'max_file_size': 10 * 1024 * 1024,  # 10MB
    'allowed_types': ['image/jpeg', 'image/png', 'image/gif', 'image/webp'],
}

# Environment Variable Configuration
ENV_VAR_MAPPING = {
    'GRID_ANALYSIS_API_BASE_URL': ('base_url', str),
    'GRID_ANALYSIS_IO_BASE_URL': ('io_base_url', str),
    'GRID_ANALYSIS_API_TIMEOUT': ('timeout', float),
    'GRID_ANALYSIS_SSL_VERIFY': ('verify_ssl', bool),
}

def get_api_config(environment: APIEnvironment = None, **overrides) -> Dict[str, Any]:
    """
    Get API configuration for a specific environment with optional overrides.

    Args:
        environment: Target environment. Falls back to GRID_ANALYSIS_ENVIRONMENT,
            then to development.
        **overrides: Configuration overrides

    Returns:
        Complete API configuration dictionary
    """
    if environment is None:
        environment = _environment_from_env()

    config = ENVIRONMENT_CONFIGS.get(environment, ENVIRONMENT_CONFIGS[APIEnvironment.DEVELOPMENT]).copy()
    config['environment'] = environment.value

    config['endpoints'] = DEFAULT_ENDPOINTS.copy()
    config['io_endpoints'] = IO_ENDPOINTS.copy()
    config['headers'] = DEFAULT_HEADERS.copy()
    config['upload'] = UPLOAD_CONFIG.copy()

    # Apply environment variable overrides
    config.update(_load_environment_overrides())

    # Apply function parameter overrides
    config.update(overrides)

    return config

def _environment_from_env() -> APIEnvironment:
    value = os.getenv('GRID_ANALYSIS_ENVIRONMENT')
    if not value:
        return APIEnvironment.DEVELOPMENT
    try:
        return APIEnvironment(value.lower())
    except ValueError:
        return APIEnvironment.DEVELOPMENT

def _load_environment_overrides() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    overrides = {}

    for env_var, (config_key, value_type) in ENV_VAR_MAPPING.items():
        env_value = os.getenv(env_var)
        if env_value is not None:
            try:
                if value_type == bool:
                    overrides[config_key] = env_value.lower() in ('true', '1', 'yes', 'on')
                elif value_type == float:
                    overrides[config_key] = float(env_value)
                else:
                    overrides[config_key] = env_value
            except (ValueError, TypeError):
                # Skip invalid environment variable values
                continue

    return overrides

def get_endpoint_url(base_url: str, endpoint_path: str, **path_params) -> str:
    """
    Construct full endpoint URL.

    Args:
        base_url: Base API URL
        endpoint_path: Endpoint template, e.g. '/result/{image_id}'
        **path_params: Values substituted into the template

    Returns:
        Full endpoint URL
    """
    # Ensure base_url doesn't have trailing slash and endpoint doesn't have leading slash
    base_url = base_url.rstrip('/')
    endpoint_path = endpoint_path.format(**path_params).lstrip('/')

    return f"{base_url}/{endpoint_path}"
