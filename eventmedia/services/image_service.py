"""
Image upload orchestration: processing plus storage.

The original artifact is critical: any failure decoding or storing it aborts
the upload. Variants are best effort: a failed variant is logged and left out
of the result.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from PIL import Image

from eventmedia.errors import SizeExceededError
from eventmedia.services.image_processor import (
    EncodedImage,
    ImageFormat,
    ImageProcessor,
)
from eventmedia.services.metrics import IMAGES_PROCESSED, PROCESSING_DURATION, VARIANTS_DROPPED
from eventmedia.services.models import (
    DEFAULT_PROCESSING_OPTIONS,
    DEFAULT_VARIANTS,
    WEBP_SUFFIX,
    ImageMetadata,
    ImageUploadResult,
    ImageVariant,
    ProcessingOptions,
    VariantConfig,
)
from eventmedia.services.storage_backend import StorageBackend
from eventmedia.services.utils import (
    as_reader,
    cache_control_for,
    generate_image_key,
    read_image_bytes,
)
from eventmedia.services.utils.image_utils import ImageSource

logger = logging.getLogger("eventmedia.images")

ORIGINAL = "original"


class ImageService:
    """Processes uploaded images into variants and persists them"""

    def __init__(
        self,
        storage: StorageBackend,
        processor: Optional[ImageProcessor] = None,
        variants: Sequence[VariantConfig] = DEFAULT_VARIANTS,
        default_options: ProcessingOptions = DEFAULT_PROCESSING_OPTIONS,
    ):
        self.storage = storage
        self.processor = processor or ImageProcessor()
        self.variants = tuple(variants)
        self.default_options = default_options

    async def upload_image(self, reader: ImageSource, filename: str) -> ImageUploadResult:
        """Process and upload an image with the default options"""
        return await self.upload_image_with_options(reader, filename, self.default_options)

    async def upload_image_with_options(
        self,
        reader: ImageSource,
        filename: str,
        options: ProcessingOptions,
    ) -> ImageUploadResult:
        """
        Decode, crop, resize and store an image with all its variants.

        Args:
            reader: Raw bytes or binary stream of the uploaded file
            filename: Client filename, used to build the key prefix
            options: Processing options

        Returns:
            ImageUploadResult with the original and every variant that succeeded

        Raises:
            InvalidImageError / UnsupportedFormatError: Input is not a usable image
            InvalidCropRegionError: Crop region is outside the image
            MediaStorageError: The original could not be stored
        """
        t0 = time.time()
        try:
            result = await self._process_upload(reader, filename, options)
        except Exception:
            IMAGES_PROCESSED.labels(status="error").inc()
            raise
        IMAGES_PROCESSED.labels(status="success").inc()
        PROCESSING_DURATION.observe(time.time() - t0)
        return result

    async def _process_upload(
        self,
        reader: ImageSource,
        filename: str,
        options: ProcessingOptions,
    ) -> ImageUploadResult:
        data = read_image_bytes(reader)
        loop = asyncio.get_event_loop()

        decoded = await loop.run_in_executor(None, self.processor.decode, data)
        img = decoded.image
        if options.crop_region is not None:
            img = self.processor.crop(img, options.crop_region)

        key_prefix = generate_image_key(filename)

        # Keep the source format unless the client declared what it can display
        storage_format = decoded.format
        if options.supported_formats:
            storage_format = self.processor.determine_optimal_format(decoded.format, options)

        encoded = await loop.run_in_executor(None, self.processor.encode, img, storage_format, options)
        original_key = f"{key_prefix}/{ORIGINAL}.{encoded.format.extension}"
        original_url = await self._store(original_key, encoded)

        original = ImageMetadata(
            key=original_key,
            url=original_url,
            size=encoded.size,
            content_type=encoded.content_type,
            width=img.width,
            height=img.height,
            uploaded_at=datetime.now(timezone.utc),
        )
        logger.info(f"Stored original {original_key} ({img.width}x{img.height}, {encoded.size} bytes)")

        with_webp = options.enable_webp and storage_format != ImageFormat.WEBP
        per_config = await asyncio.gather(*[
            self._create_variants(img, key_prefix, config, storage_format, options, with_webp)
            for config in self.variants
        ])
        variants = [variant for group in per_config for variant in group]

        return ImageUploadResult(original=original, variants=variants)

    async def _create_variants(
        self,
        img: Image.Image,
        key_prefix: str,
        config: VariantConfig,
        storage_format: ImageFormat,
        options: ProcessingOptions,
        with_webp: bool,
    ) -> List[ImageVariant]:
        """Create one catalog variant and, if requested, its -webp counterpart"""
        created = []
        try:
            created.append(
                await self._create_variant(img, key_prefix, config, config.name, storage_format, options)
            )
        except Exception as e:
            # Log error but continue with other variants
            logger.warning(f"Failed to create variant {config.name} for {key_prefix}: {e}")
            VARIANTS_DROPPED.labels(variant=config.name).inc()
            return created

        if with_webp:
            webp_name = config.name + WEBP_SUFFIX
            try:
                created.append(
                    await self._create_variant(img, key_prefix, config, webp_name, ImageFormat.WEBP, options)
                )
            except Exception as e:
                logger.warning(f"Failed to create WebP variant {webp_name} for {key_prefix}: {e}")
                VARIANTS_DROPPED.labels(variant=webp_name).inc()

        return created

    async def _create_variant(
        self,
        img: Image.Image,
        key_prefix: str,
        config: VariantConfig,
        name: str,
        fmt: ImageFormat,
        options: ProcessingOptions,
    ) -> ImageVariant:
        loop = asyncio.get_event_loop()
        encoded = await loop.run_in_executor(None, self.processor.render_variant, img, config, fmt, options)

        key = f"{key_prefix}/{name}.{encoded.format.extension}"
        url = await self._store(key, encoded)

        return ImageVariant(
            name=name,
            key=key,
            url=url,
            size=encoded.size,
            content_type=encoded.content_type,
            width=encoded.width,
            height=encoded.height,
            uploaded_at=datetime.now(timezone.utc),
        )

    async def _store(self, key: str, encoded: EncodedImage) -> str:
        return await self.storage.upload(
            key,
            as_reader(encoded.data),
            encoded.content_type,
            encoded.size,
            cache_control=cache_control_for(encoded.content_type),
        )

    def _artifact_names(self) -> List[str]:
        names = [ORIGINAL]
        for config in self.variants:
            names.append(config.name)
            names.append(config.name + WEBP_SUFFIX)
        return names

    async def delete_image(self, key_prefix: str) -> None:
        """
        Delete an image and all its variants.

        Every artifact name is tried with every known extension. Failures are
        logged and do not stop the remaining deletes.
        """
        for name in self._artifact_names():
            for fmt in ImageFormat:
                key = f"{key_prefix}/{name}.{fmt.extension}"
                try:
                    await self.storage.delete(key)
                except Exception as e:
                    logger.warning(f"Failed to delete {key}: {e}")

    def validate_image(self, reader: ImageSource, max_size: int) -> None:
        """
        Validate an image without storing anything.

        Raises:
            SizeExceededError: If the input is larger than max_size (no decode attempted)
            InvalidImageError / UnsupportedFormatError: If the bytes are not a usable image
        """
        data = read_image_bytes(reader, limit=max_size + 1)
        if len(data) > max_size:
            raise SizeExceededError(len(data), max_size)

        self.processor.decode(data)

    def get_image_url(self, key_prefix: str, variant_name: str, fmt: Optional[Union[str, ImageFormat]] = None) -> str:
        """
        URL for a variant. Unknown variant names resolve to the original.

        Args:
            key_prefix: Upload key prefix
            variant_name: 'original', a catalog name, or a catalog name with -webp
            fmt: Optional format whose extension is appended to the key
        """
        if variant_name not in self._artifact_names():
            variant_name = ORIGINAL

        key = f"{key_prefix}/{variant_name}"
        if fmt is not None:
            key = f"{key}.{ImageFormat.parse(fmt).extension}"
        return self.storage.get_url(key)

    def get_optimal_image_url(self, key_prefix: str, variant_name: str, accept_header: str) -> str:
        """
        URL for the best variant the client accepts.

        Does not check that the WebP artifact exists; use storage.exists for that.
        """
        supports_webp = "image/webp" in (accept_header or "").lower()
        if supports_webp and variant_name in (config.name for config in self.variants):
            return self.storage.get_url(f"{key_prefix}/{variant_name}{WEBP_SUFFIX}")

        return self.get_image_url(key_prefix, variant_name)

    def get_image_variants(self, key_prefix: str) -> List[str]:
        """Declared variant names for an upload (not a live inventory)"""
        return self._artifact_names()
