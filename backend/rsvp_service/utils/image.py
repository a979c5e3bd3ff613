import base64
import binascii
import io
import logging
import os
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MIME_BY_EXTENSION = {
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'webp': 'image/webp',
}

MIME_BY_FORMAT = {
    'PNG': 'image/png',
    'JPEG': 'image/jpeg',
    'GIF': 'image/gif',
    'WEBP': 'image/webp',
}

_DATA_URI = re.compile(r'^data:([^;]+);base64,(.+)$', re.DOTALL)


def mime_type_for_filename(filename: str) -> str:
    """Guess the MIME type from the file extension"""
    ext = os.path.splitext(filename)[1].lower().lstrip('.')
    return MIME_BY_EXTENSION.get(ext, 'application/octet-stream')


def extension_for_mime_type(mime_type: str) -> str:
    return 'png' if mime_type == 'image/png' else 'jpg'


def detect_image_mime(image_bytes: bytes) -> Optional[str]:
    """
    Open the bytes with Pillow and return the real MIME type.
    Returns None when the data is not a readable image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.verify()
            return MIME_BY_FORMAT.get(image.format)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.warning(f"Image validation error: {str(e)}")
        return None


def to_data_uri(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode('ascii')
    return f"data:{mime_type};base64,{encoded}"


def parse_data_uri(data_uri: str) -> Optional[Tuple[str, bytes]]:
    """Split a base64 data URI into (mime_type, raw bytes)"""
    match = _DATA_URI.match(data_uri or '')
    if not match:
        return None
    try:
        return match.group(1), base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Invalid base64 image payload: {str(e)}")
        return None
