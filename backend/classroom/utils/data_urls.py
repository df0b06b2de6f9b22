"""
Data URL helpers for images handed to the browser.
"""
import base64
import binascii
from typing import Tuple


def guess_image_mime(data: bytes) -> str:
    """Sniff the image format from magic bytes; defaults to PNG."""
    if data.startswith(b'\xff\xd8\xff'):
        return 'image/jpeg'
    if data.startswith((b'GIF87a', b'GIF89a')):
        return 'image/gif'
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'image/webp'
    return 'image/png'


def to_data_url(data: bytes, mime_type: str = '') -> str:
    mime = mime_type or guess_image_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(url: str) -> Tuple[bytes, str]:
    """
    Split a base64 data URL into (payload, mime type).

    Raises:
        ValueError: if the URL is not a base64 data URL
    """
    if not url.startswith('data:') or ',' not in url:
        raise ValueError("Not a data URL")
    header, payload = url[5:].split(',', 1)
    if not header.endswith(';base64'):
        raise ValueError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True), header[:-len(';base64')]
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
