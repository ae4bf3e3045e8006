"""
Abstract interface for storage backends.
Implemented by the S3-compatible remote store, the local filesystem store
and the failover composite of the two.
"""
from abc import ABC, abstractmethod
from typing import BinaryIO, List, Optional

from eventmedia.errors import NotSupportedError


class StorageBackend(ABC):
    """Abstract base class for storage backends"""

    @property
    def name(self) -> str:
        """Short backend name used in logs and metric labels"""
        return self.__class__.__name__

    @abstractmethod
    async def upload(
        self,
        key: str,
        reader: BinaryIO,
        content_type: str,
        size: int,
        cache_control: Optional[str] = None,
    ) -> str:
        """
        Persist an object.

        Args:
            key: Storage key (leading slash is ignored)
            reader: Binary stream holding exactly `size` bytes
            content_type: MIME type stored with the object
            size: Declared byte length
            cache_control: Cache-Control value for backends that serve HTTP directly

        Returns:
            Public URL of the stored object

        Raises:
            BackendUnavailableError: If the backend could not store the object
            SizeMismatchError: If the bytes written differ from `size`
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete an object. Deleting a missing key is not an error.

        Raises:
            BackendUnavailableError: On I/O failure
        """
        pass

    @abstractmethod
    def get_url(self, key: str) -> str:
        """Public URL for a key. Pure string work, never fails."""
        pass

    @abstractmethod
    async def generate_presigned_url(self, key: str, content_type: str, expiration: int) -> str:
        """
        Time-limited URL for a direct client upload.

        Args:
            key: Storage key
            content_type: Content type the upload is locked to
            expiration: Lifetime in seconds

        Raises:
            NotSupportedError: If the backend cannot issue presigned URLs
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check whether an object exists.

        Raises:
            BackendUnavailableError: On I/O failure (never on absence)
        """
        pass

    async def list_keys(self, prefix: str = "") -> List[str]:
        """
        List stored keys under a prefix, sorted.

        Raises:
            NotSupportedError: If the backend cannot enumerate objects
        """
        raise NotSupportedError(f"{self.name} does not support listing keys")
