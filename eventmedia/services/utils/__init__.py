"""Utility functions for services"""

from .image_utils import as_reader, cache_control_for, is_rewindable, read_image_bytes
from .keys import clean_filename_base, generate_image_key

__all__ = [
    "as_reader",
    "cache_control_for",
    "is_rewindable",
    "read_image_bytes",
    "clean_filename_base",
    "generate_image_key",
]
