"""
Data Processor Component
This module converts between data URLs, raw image bytes and upload file objects,
and reads image dimensions with PIL.
"""

import logging
import base64
import binascii
import io
import re
from typing import Tuple
from dataclasses import dataclass
from PIL import Image, UnidentifiedImageError

from ..core.coordinate_system import ImageDimensions

logger = logging.getLogger(__name__)

_MIME_PATTERN = re.compile(r'^data:(.*?);')

@dataclass(frozen=True)
class ImageFile:
    """An in-memory file ready for multipart upload."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_upload_tuple(self) -> Tuple[str, bytes, str]:
        """The (filename, content, content type) form used by requests' files=."""
        return (self.filename, self.data, self.content_type)

def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a base64 data URL into its MIME type and decoded bytes.

    Args:
        data_url: 'data:<mime>;base64,<payload>'

    Returns:
        Tuple of (mime type, bytes)

    Raises:
        ValueError: if the string is not a decodable base64 data URL
    """
    if not isinstance(data_url, str):
        raise ValueError("Image data must be a string")

    parts = data_url.split(',', 1)
    if len(parts) < 2:
        raise ValueError("Invalid base64 format")

    header, payload = parts
    if not header:
        raise ValueError("Invalid base64 format: missing MIME part")

    mime_match = _MIME_PATTERN.match(header)
    if not mime_match or not mime_match.group(1):
        raise ValueError("Could not determine MIME type")

    if not payload:
        raise ValueError("Invalid base64 format: empty payload")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 payload: {e}") from e

    return mime_match.group(1), data

def data_url_to_file(data_url: str, filename: str) -> ImageFile:
    """Decode a data URL into an uploadable file object."""
    mime, data = parse_data_url(data_url)
    logger.debug(f"Decoded {filename}: {mime}, {len(data)} bytes")
    return ImageFile(filename=filename, content_type=mime, data=data)

def bytes_to_data_url(data: bytes, content_type: str = 'image/png') -> str:
    """Encode raw bytes as a base64 data URL."""
    encoded = base64.b64encode(data).decode('ascii')
    return f"data:{content_type};base64,{encoded}"

def probe_dimensions(data: bytes) -> ImageDimensions:
    """
    Read the pixel extents of encoded image bytes.

    Raises:
        ValueError: if the bytes are not a readable image or exceed the pixel limit
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ValueError(f"Failed to load image for dimension calculation: {e}") from e

    return ImageDimensions(width=width, height=height)
