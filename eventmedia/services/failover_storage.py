"""
Primary/fallback composition of two storage backends.

Uploads are retried against the fallback when the primary fails. Deletes go to
both backends and only fail when both do. URLs always come from the primary so
the public address space stays stable.
"""
import logging
from typing import BinaryIO, List, Optional

from eventmedia.errors import BothBackendsFailedError, CannotRetryError
from eventmedia.services.metrics import STORAGE_FAILOVERS
from eventmedia.services.storage_backend import StorageBackend
from eventmedia.services.utils import is_rewindable

logger = logging.getLogger("eventmedia.storage.failover")


class FailoverStorage(StorageBackend):
    """Storage backend that falls back to a secondary backend on failure"""

    def __init__(self, primary: StorageBackend, fallback: StorageBackend):
        self.primary = primary
        self.fallback = fallback

    @property
    def name(self) -> str:
        return f"{self.primary.name}+{self.fallback.name}"

    async def upload(
        self,
        key: str,
        reader: BinaryIO,
        content_type: str,
        size: int,
        cache_control: Optional[str] = None,
    ) -> str:
        """Try primary storage first, fall back to the secondary on error"""
        try:
            return await self.primary.upload(key, reader, content_type, size, cache_control)
        except Exception as primary_error:
            if not is_rewindable(reader):
                raise CannotRetryError(
                    f"primary storage failed and cannot reset reader for fallback: {primary_error}"
                ) from primary_error

            logger.warning(f"Primary storage failed for {key}, using fallback: {primary_error}")
            STORAGE_FAILOVERS.labels(operation="upload").inc()
            reader.seek(0)

        return await self.fallback.upload(key, reader, content_type, size, cache_control)

    async def delete(self, key: str) -> None:
        """Delete from both storages, error only if both failed"""
        primary_error = fallback_error = None

        try:
            await self.primary.delete(key)
        except Exception as e:
            primary_error = e
            logger.warning(f"Primary storage delete failed for {key}: {e}")

        try:
            await self.fallback.delete(key)
        except Exception as e:
            fallback_error = e
            logger.warning(f"Fallback storage delete failed for {key}: {e}")

        if primary_error is not None and fallback_error is not None:
            raise BothBackendsFailedError("delete", primary_error, fallback_error)

    def get_url(self, key: str) -> str:
        return self.primary.get_url(key)

    async def generate_presigned_url(self, key: str, content_type: str, expiration: int) -> str:
        return await self.primary.generate_presigned_url(key, content_type, expiration)

    async def exists(self, key: str) -> bool:
        """True if the primary has the key, otherwise ask the fallback"""
        primary_error = None
        try:
            if await self.primary.exists(key):
                return True
        except Exception as e:
            primary_error = e
            logger.warning(f"Primary storage exists check failed for {key}: {e}")
            STORAGE_FAILOVERS.labels(operation="exists").inc()

        try:
            return await self.fallback.exists(key)
        except Exception as fallback_error:
            if primary_error is not None:
                raise BothBackendsFailedError("exists", primary_error, fallback_error) from fallback_error
            logger.warning(f"Fallback storage exists check failed for {key}: {fallback_error}")
            return False

    async def list_keys(self, prefix: str = "") -> List[str]:
        """Union of the keys held by both backends"""
        keys = set()
        errors = []
        for backend in (self.primary, self.fallback):
            try:
                keys.update(await backend.list_keys(prefix))
            except Exception as e:
                logger.warning(f"{backend.name} storage list failed for {prefix!r}: {e}")
                errors.append(e)

        if len(errors) == 2:
            raise BothBackendsFailedError("list_keys", errors[0], errors[1])
        return sorted(keys)
