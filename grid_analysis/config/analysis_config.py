"""
Analysis Configuration Module
Defaults for manual grid analysis: initial line layout, table fallbacks,
remote blur parameters and export polling.
"""

from typing import Dict, Any
import copy

DEFAULT_ANALYSIS_CONFIG = {
    # Initial lines placed on an image without a configuration
    'default_line_fractions': (0.25, 0.5, 0.75),

    # Table layout fallbacks
    'default_block_size': {
        'y': 16,
        'x': 18,
    },
    'fallback_table_shape': {
        'rows': 4,
        'cols': 4,
    },

    # Parameters for the remote gaussian blur
    'gaussian_blur': {
        'kernel_size': 3,
        'sigma_x': 0,
        'sigma_y': 0,
    },

    # Dataset export task polling
    'export_polling': {
        'interval': 1.0,  # seconds
        'max_attempts': 60,
    },

    # Markup import
    'import': {
        'default_name_pattern': 'imported_{timestamp}.png',
        'file_encoding': 'utf-8',
    },
}

def get_analysis_config(**overrides) -> Dict[str, Any]:
    """
    Get analysis configuration with optional overrides.

    Args:
        **overrides: Top level keys to replace

    Returns:
        Analysis configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_ANALYSIS_CONFIG)
    config.update(overrides)
    return config
