"""Helpers for moving image bytes between callers and storage"""

import io
from typing import BinaryIO, Optional, Union

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
DEFAULT_CACHE_CONTROL = "public, max-age=86400"

ImageSource = Union[bytes, bytearray, BinaryIO]


def read_image_bytes(source: ImageSource, limit: Optional[int] = None) -> bytes:
    """
    Read image bytes from a file-like object or return raw bytes as-is.

    Args:
        source: Raw bytes or a binary file-like object
        limit: Read at most this many bytes

    Returns:
        Bytes read (possibly truncated to limit)
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        return data if limit is None else data[:limit]

    data = source.read() if limit is None else source.read(limit)
    if isinstance(data, str):
        raise TypeError("Image source must be opened in binary mode")
    return data


def is_rewindable(reader) -> bool:
    """True if the stream can be seeked back to its start"""
    seekable = getattr(reader, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


def cache_control_for(content_type: str) -> str:
    """
    Cache-Control header value for an uploaded object.

    Stored images never change under a key, so they can be cached for a year.
    """
    if content_type.startswith("image/"):
        return IMMUTABLE_CACHE_CONTROL
    return DEFAULT_CACHE_CONTROL


def as_reader(data: bytes) -> io.BytesIO:
    """Wrap encoded bytes in a seekable stream for upload"""
    return io.BytesIO(data)
