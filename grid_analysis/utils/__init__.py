"""
Utilities Package for Grid Analysis
This package provides the error taxonomy and error description helpers.
"""

from .error_handling import (
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
    classify_error,
    describe_error,
    format_error_detail,
)

__all__ = [
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
    'classify_error',
    'describe_error',
    'format_error_detail',
]
