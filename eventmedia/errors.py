"""
Error taxonomy for the media pipeline.

Format and crop errors are surfaced to callers immediately. Backend errors are
eligible for failover retry and only surface when every backend has failed.
"""
from typing import Optional


class MediaStorageError(Exception):
    """Base class for all media pipeline errors"""


class ImageFormatError(MediaStorageError):
    """Input could not be used as an image"""


class InvalidImageError(ImageFormatError):
    """Bytes are not a decodable image"""


class UnsupportedFormatError(ImageFormatError):
    """Image decoded fine but its format (or the requested encode target) is not supported"""

    def __init__(self, format_name: Optional[str]):
        self.format_name = format_name
        super().__init__(f"unsupported image format: {format_name}")


class InvalidCropRegionError(MediaStorageError):
    """Crop geometry is outside the source image or non-positive"""


class SizeExceededError(MediaStorageError):
    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"image size {size} bytes exceeds maximum allowed size {max_size} bytes"
        )


class BackendUnavailableError(MediaStorageError):
    """Storage backend failed to complete an I/O operation"""


class SizeMismatchError(BackendUnavailableError):
    def __init__(self, key: str, expected: int, written: int):
        self.key = key
        self.expected = expected
        self.written = written
        super().__init__(
            f"size mismatch for {key}: expected {expected} bytes, wrote {written} bytes"
        )


class NotSupportedError(MediaStorageError):
    """Capability not offered by this backend"""


class CannotRetryError(MediaStorageError):
    """Primary upload failed and the input stream cannot be rewound for the fallback"""


class BothBackendsFailedError(MediaStorageError):
    def __init__(self, operation: str, primary_error: Exception, fallback_error: Exception):
        self.operation = operation
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(
            f"both storages failed on {operation} - primary: {primary_error}, fallback: {fallback_error}"
        )


class StorageNotConfiguredError(MediaStorageError):
    """Remote backend is missing required configuration"""


class InvalidKeyError(MediaStorageError, ValueError):
    """Storage key would escape the backend root"""
