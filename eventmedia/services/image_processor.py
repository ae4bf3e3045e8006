"""
Image decoding, cropping, resizing and encoding.

Pipeline per upload: decode -> [crop] -> resize per catalog entry -> encode.
Only JPEG, PNG and WebP are accepted as inputs and produced as outputs.
"""
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Union

from PIL import Image, ImageOps, features

from eventmedia.errors import (
    InvalidCropRegionError,
    InvalidImageError,
    UnsupportedFormatError,
)
from eventmedia.services.models import CropRegion, ProcessingOptions, VariantConfig

logger = logging.getLogger("eventmedia.images.processor")

DEFAULT_JPEG_QUALITY = 85
DEFAULT_PNG_COMPRESSION = 6
WEBP_QUALITY = 90


class ImageFormat(str, Enum):
    """Formats the pipeline decodes and encodes"""
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @classmethod
    def parse(cls, name: Union[str, "ImageFormat"]) -> "ImageFormat":
        """
        Resolve a format name (case-insensitive, 'jpg' and Pillow's 'MPO' map to JPEG).

        Raises:
            UnsupportedFormatError: For any other format
        """
        if isinstance(name, ImageFormat):
            return name
        normalized = (name or "").lower()
        if normalized in ("jpg", "mpo"):
            normalized = "jpeg"
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedFormatError(name) from None


@dataclass
class DecodedImage:
    image: Image.Image
    format: ImageFormat

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass
class EncodedImage:
    data: bytes
    format: ImageFormat
    width: int
    height: int

    @property
    def content_type(self) -> str:
        return self.format.content_type

    @property
    def size(self) -> int:
        return len(self.data)


def _to_rgb(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel
    if img.mode in ('RGB', 'L'):
        return img
    return img.convert('RGB')


def _encode_jpeg(img: Image.Image, options: ProcessingOptions) -> EncodedImage:
    quality = options.quality
    if quality < 1 or quality > 100:
        quality = DEFAULT_JPEG_QUALITY
    return _save(_to_rgb(img), ImageFormat.JPEG, quality=quality, optimize=True)


def _encode_png(img: Image.Image, options: ProcessingOptions) -> EncodedImage:
    level = options.compression_level
    if level < 0 or level > 9:
        level = DEFAULT_PNG_COMPRESSION
    return _save(img, ImageFormat.PNG, compress_level=level)


def _encode_webp(img: Image.Image, options: ProcessingOptions) -> EncodedImage:
    if not webp_supported():
        # Pillow built without libwebp: ship JPEG bytes labelled as JPEG
        return _save(_to_rgb(img), ImageFormat.JPEG, quality=WEBP_QUALITY, optimize=True)
    if img.mode not in ('RGB', 'RGBA'):
        img = img.convert('RGBA' if 'A' in img.getbands() or 'transparency' in img.info else 'RGB')
    return _save(img, ImageFormat.WEBP, quality=WEBP_QUALITY, method=4)


def _save(img: Image.Image, fmt: ImageFormat, **save_kwargs) -> EncodedImage:
    buf = io.BytesIO()
    img.save(buf, format=fmt.pillow_format, **save_kwargs)
    return EncodedImage(data=buf.getvalue(), format=fmt, width=img.width, height=img.height)


ENCODERS: Dict[ImageFormat, Callable[[Image.Image, ProcessingOptions], EncodedImage]] = {
    ImageFormat.JPEG: _encode_jpeg,
    ImageFormat.PNG: _encode_png,
    ImageFormat.WEBP: _encode_webp,
}


def webp_supported() -> bool:
    """True if this Pillow build can encode WebP"""
    return bool(features.check("webp"))


class ImageProcessor:
    """Stateless image transformations used by ImageService"""

    def decode(self, data: bytes) -> DecodedImage:
        """
        Decode raw bytes into a raster with EXIF orientation applied.

        Raises:
            InvalidImageError: If the bytes are not a readable image
            UnsupportedFormatError: If the image is not JPEG, PNG or WebP
        """
        if not data:
            raise InvalidImageError("Image bytes cannot be empty")

        try:
            img = Image.open(io.BytesIO(data))
        except Exception as e:
            raise InvalidImageError(f"invalid image format: {e}") from e

        fmt = ImageFormat.parse(img.format)

        try:
            img.load()
            img = ImageOps.exif_transpose(img)
        except Exception as e:
            raise InvalidImageError(f"failed to decode image: {e}") from e

        return DecodedImage(image=img, format=fmt)

    def crop(self, img: Image.Image, region: CropRegion) -> Image.Image:
        """
        Crop to exactly region.width x region.height.

        Raises:
            InvalidCropRegionError: If the region is outside the image or empty
        """
        if region.x < 0 or region.y < 0:
            raise InvalidCropRegionError("crop coordinates cannot be negative")
        if region.width <= 0 or region.height <= 0:
            raise InvalidCropRegionError("crop dimensions must be positive")
        if region.x + region.width > img.width or region.y + region.height > img.height:
            raise InvalidCropRegionError(
                f"crop area {region.width}x{region.height}+{region.x}+{region.y} "
                f"exceeds image bounds {img.width}x{img.height}"
            )

        return img.crop((region.x, region.y, region.x + region.width, region.y + region.height))

    def resize(self, img: Image.Image, config: VariantConfig) -> Image.Image:
        """Fit within the variant's bounding box, keeping aspect ratio. Never upscales."""
        scale = min(config.max_width / img.width, config.max_height / img.height)
        if scale >= 1:
            return img.copy()

        width = max(1, round(img.width * scale))
        height = max(1, round(img.height * scale))
        return img.resize((width, height), config.resample)

    def encode(
        self,
        img: Image.Image,
        fmt: Union[str, ImageFormat],
        options: ProcessingOptions,
    ) -> EncodedImage:
        """
        Encode a raster in the requested format.

        Raises:
            UnsupportedFormatError: If fmt is not jpeg, png or webp
        """
        return ENCODERS[ImageFormat.parse(fmt)](img, options)

    def render_variant(
        self,
        img: Image.Image,
        config: VariantConfig,
        fmt: Union[str, ImageFormat],
        options: ProcessingOptions,
    ) -> EncodedImage:
        """Resize for a catalog entry and encode"""
        return self.encode(self.resize(img, config), fmt, options)

    def determine_optimal_format(self, original_format: Union[str, ImageFormat], options: ProcessingOptions) -> ImageFormat:
        """Pick the storage format from client support and the source format"""
        # If WebP is enabled and supported by client, prefer WebP for better compression
        if options.enable_webp:
            for supported in options.supported_formats:
                if "webp" in supported.lower():
                    return ImageFormat.WEBP

        if isinstance(original_format, ImageFormat):
            original_format = original_format.value

        # PNG may carry transparency
        if original_format.lower() == "png":
            return ImageFormat.PNG

        # Default to JPEG for photos
        return ImageFormat.JPEG
