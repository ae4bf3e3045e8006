"""
Data model for stored images, their variants and processing options.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional

from PIL import Image


@dataclass
class ImageMetadata:
    """One stored artifact (the original or a variant)"""
    key: str
    url: str
    size: int
    content_type: str
    width: int
    height: int
    uploaded_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "key": self.key,
            "url": self.url,
            "size": self.size,
            "content_type": self.content_type,
            "width": self.width,
            "height": self.height,
            "uploaded_at": self.uploaded_at.isoformat(),
        }


@dataclass
class ImageVariant(ImageMetadata):
    """Resized derivative, named after its catalog entry (optionally with -webp)"""
    name: str

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["name"] = self.name
        return data


@dataclass
class ImageUploadResult:
    original: ImageMetadata
    variants: List[ImageVariant] = field(default_factory=list)

    def variant(self, name: str) -> Optional[ImageVariant]:
        for variant in self.variants:
            if variant.name == name:
                return variant
        return None

    def to_dict(self) -> dict:
        return {
            "original": self.original.to_dict(),
            "variants": [v.to_dict() for v in self.variants],
        }


@dataclass(frozen=True)
class VariantConfig:
    """Catalog entry: a named bounding box and the resample filter used to reach it"""
    name: str
    max_width: int
    max_height: int
    resample: Image.Resampling = Image.Resampling.LANCZOS


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in source-pixel coordinates"""
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class ProcessingOptions:
    quality: int = 85  # JPEG quality (1-100)
    enable_webp: bool = True
    compression_level: int = 6  # PNG compression (0-9)
    supported_formats: FrozenSet[str] = frozenset()  # MIME types from the client's Accept header
    crop_region: Optional[CropRegion] = None


DEFAULT_VARIANTS = (
    VariantConfig(name="thumbnail", max_width=150, max_height=150),
    VariantConfig(name="medium", max_width=400, max_height=300),
    VariantConfig(name="large", max_width=800, max_height=600),
)

DEFAULT_PROCESSING_OPTIONS = ProcessingOptions(quality=85, enable_webp=True, compression_level=6)

WEBP_SUFFIX = "-webp"
