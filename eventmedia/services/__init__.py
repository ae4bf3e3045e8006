"""Media storage services"""

from .failover_storage import FailoverStorage
from .image_processor import ImageFormat, ImageProcessor
from .image_service import ImageService
from .local_file_storage import LocalFileStorage
from .models import (
    DEFAULT_PROCESSING_OPTIONS,
    DEFAULT_VARIANTS,
    CropRegion,
    ImageMetadata,
    ImageUploadResult,
    ImageVariant,
    ProcessingOptions,
    VariantConfig,
)
from .s3_storage import S3Storage
from .storage_backend import StorageBackend

__all__ = [
    "FailoverStorage",
    "ImageFormat",
    "ImageProcessor",
    "ImageService",
    "LocalFileStorage",
    "S3Storage",
    "StorageBackend",
    "DEFAULT_PROCESSING_OPTIONS",
    "DEFAULT_VARIANTS",
    "CropRegion",
    "ImageMetadata",
    "ImageUploadResult",
    "ImageVariant",
    "ProcessingOptions",
    "VariantConfig",
]
