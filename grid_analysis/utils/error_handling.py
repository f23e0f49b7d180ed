"""
Error Handling Utilities
This module defines the exception hierarchy for grid analysis and maps errors
to short user-friendly messages.
"""

import logging
from typing import Dict, List, Optional, Any, Tuple
from enum import Enum

logger = logging.getLogger(__name__)

class ErrorCategory(Enum):
    """Error categories for classification."""
    NETWORK = "network"
    REMOTE = "remote"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

class GridAnalysisError(Exception):
    """Base class for all grid analysis errors."""
    category = ErrorCategory.UNKNOWN

class ValidationError(GridAnalysisError):
    """Malformed document, dimensions or analysis state."""
    category = ErrorCategory.VALIDATION

class InvalidDimensions(ValidationError):
    """Image width or height is not positive."""

class MalformedMarkup(ValidationError):
    """Markup document cannot be parsed or its embedded image cannot be decoded."""

class DimensionProbeFailed(ValidationError):
    """Image bytes could not be decoded to read width and height."""

class LinesNotConfigured(ValidationError):
    """An operation needs at least one vertical and one horizontal line."""

class NetworkError(GridAnalysisError):
    """Transport level failure: connection refused, socket timeout, broken response."""
    category = ErrorCategory.NETWORK

class RemoteComputationError(GridAnalysisError):
    """The remote service reported a failure explicitly."""
    category = ErrorCategory.REMOTE

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}

class OperationTimeout(GridAnalysisError):
    """A polled remote task did not finish within the allowed attempts."""
    category = ErrorCategory.TIMEOUT

# Messages shown to a user for each category
USER_MESSAGES = {
    ErrorCategory.NETWORK: 'Network error. Check the connection to the server.',
    ErrorCategory.TIMEOUT: 'The server did not finish the task in time.',
}

def format_error_detail(error_data: Any) -> Optional[str]:
    """
    Flatten a server error payload into one message.

    A list 'detail' (request validation errors) becomes
    'Validation error: loc.path: msg; ...'. A string 'detail' is used as is.

    Args:
        error_data: Decoded JSON body of an error response

    Returns:
        Message or None when the payload carries no detail
    """
    if not isinstance(error_data, dict):
        return None

    detail = error_data.get('detail')
    if not detail:
        return error_data.get('message') or error_data.get('error')

    if isinstance(detail, list):
        parts: List[str] = []
        for entry in detail:
            if isinstance(entry, str):
                parts.append(entry)
            elif isinstance(entry, dict) and entry.get('msg') and entry.get('loc'):
                location = '.'.join(str(part) for part in entry['loc'])
                parts.append(f"{location}: {entry['msg']}")
            else:
                parts.append(str(entry))
        return f"Validation error: {'; '.join(parts)}"

    return str(detail)

def classify_error(exception: BaseException) -> Tuple[ErrorCategory, str]:
    """
    Classify an exception and produce a user-friendly message.

    Args:
        exception: The exception to classify

    Returns:
        Tuple of (category, user message)
    """
    if isinstance(exception, GridAnalysisError):
        category = exception.category
    elif isinstance(exception, (ConnectionError, TimeoutError)):
        category = ErrorCategory.NETWORK
    else:
        category = ErrorCategory.UNKNOWN

    if category in USER_MESSAGES:
        return category, USER_MESSAGES[category]

    if isinstance(exception, RemoteComputationError):
        if exception.status_code == 404:
            return category, 'Result not found.'
        if exception.status_code is not None and exception.status_code >= 500:
            return category, 'Internal server error.'

    message = str(exception)
    return category, message or 'An unknown error occurred.'

def describe_error(exception: BaseException) -> str:
    """Return the user-facing message for an exception."""
    category, message = classify_error(exception)
    logger.debug(f"Described {type(exception).__name__} as {category.value}: {message}")
    return message
