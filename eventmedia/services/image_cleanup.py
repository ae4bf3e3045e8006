"""
Cleanup of stored images that no longer belong to any event.

Callers supply the key prefixes still referenced by their records; every stored
key outside those prefixes is an orphan.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from eventmedia.errors import NotSupportedError
from eventmedia.services.image_service import ImageService
from eventmedia.services.storage_backend import StorageBackend
from eventmedia.services.utils.keys import KEY_ROOT

logger = logging.getLogger("eventmedia.images.cleanup")


@dataclass
class OrphanedImage:
    key: str
    url: str


@dataclass
class ImageCleanupResult:
    total_images_in_storage: int
    total_referenced_prefixes: int
    dry_run: bool
    orphaned_images: List[OrphanedImage] = field(default_factory=list)
    cleaned_up: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def summary(self) -> str:
        if self.dry_run:
            return (
                f"Dry run completed. Found {len(self.orphaned_images)} orphaned images "
                f"out of {self.total_images_in_storage} total images in storage."
            )
        return f"Cleanup completed. Cleaned up {len(self.cleaned_up)} images, {len(self.errors)} errors occurred."


class ImageCleanupService:
    """Finds and removes orphaned image objects"""

    def __init__(self, storage: StorageBackend, image_service: Optional[ImageService] = None):
        self.storage = storage
        self.image_service = image_service or ImageService(storage)

    @staticmethod
    def find_orphaned_keys(referenced_prefixes: Iterable[str], stored_keys: Iterable[str]) -> List[str]:
        """Stored keys that do not live under any referenced prefix"""
        prefixes = tuple(p.strip('/') + '/' for p in referenced_prefixes if p.strip('/'))
        return [key for key in stored_keys if not key.startswith(prefixes)]

    async def cleanup_orphaned_images(
        self,
        referenced_prefixes: Iterable[str],
        dry_run: bool = True,
        prefix: str = KEY_ROOT + "/",
    ) -> ImageCleanupResult:
        """
        Remove stored images not referenced by any record.

        Args:
            referenced_prefixes: Key prefixes still in use
            dry_run: Only report orphans, delete nothing
            prefix: Storage prefix to scan

        Raises:
            NotSupportedError: If the storage backend cannot list keys
        """
        referenced = list(referenced_prefixes)
        logger.info(f"Starting image cleanup (dry run: {dry_run})")

        stored_keys = await self.storage.list_keys(prefix)
        orphaned_keys = self.find_orphaned_keys(referenced, stored_keys)
        logger.info(f"Found {len(orphaned_keys)} orphaned images out of {len(stored_keys)} stored")

        result = ImageCleanupResult(
            total_images_in_storage=len(stored_keys),
            total_referenced_prefixes=len(referenced),
            dry_run=dry_run,
            orphaned_images=[OrphanedImage(key=k, url=self.storage.get_url(k)) for k in orphaned_keys],
        )

        if dry_run:
            return result

        for key in orphaned_keys:
            try:
                await self.storage.delete(key)
            except Exception as e:
                message = f"Failed to delete {key}: {e}"
                result.errors.append(message)
                logger.error(message)
            else:
                result.cleaned_up.append(key)
                logger.info(f"Deleted orphaned image: {key}")

        logger.info(result.summary())
        return result

    async def cleanup_image_prefix(self, key_prefix: str) -> None:
        """
        Delete every object stored under one upload prefix.

        Falls back to deleting the declared variant names when the backend
        cannot list keys.
        """
        try:
            keys = await self.storage.list_keys(key_prefix.rstrip('/') + '/')
        except NotSupportedError:
            await self.image_service.delete_image(key_prefix)
            return

        for key in keys:
            try:
                await self.storage.delete(key)
            except Exception as e:
                logger.warning(f"Failed to delete {key}: {e}")
        logger.info(f"Cleaned up {len(keys)} objects under {key_prefix}")
