"""
Local filesystem implementation of StorageBackend.
Used as the durable fallback when the remote object store is unavailable.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import BinaryIO, List, Optional

from eventmedia.errors import (
    BackendUnavailableError,
    InvalidKeyError,
    NotSupportedError,
    SizeMismatchError,
)
from eventmedia.services.metrics import record_delete, record_upload
from eventmedia.services.storage_backend import StorageBackend

logger = logging.getLogger("eventmedia.storage.local")

CHUNK_SIZE = 64 * 1024


def normalize_key(key: str) -> str:
    """Strip leading separators so a key always resolves under the base directory"""
    return key.lstrip("/")


class LocalFileStorage(StorageBackend):
    """Local filesystem storage mirroring the object key layout as directories"""

    def __init__(self, base_path: str = "./web/static/uploads", base_url: str = "http://localhost:8080/static/uploads"):
        self.base_path = Path(base_path).resolve()
        self.base_url = base_url.rstrip('/')

        # Create base directory if it doesn't exist
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to create storage directory {self.base_path}: {e}")

    @property
    def name(self) -> str:
        return "local"

    def _resolve(self, key: str) -> Path:
        """Map a key to a file path under base_path, rejecting traversal"""
        clean = normalize_key(key)
        parts = clean.replace("\\", "/").split("/")
        if not clean or ".." in parts:
            raise InvalidKeyError(f"Invalid storage key: {key!r}")
        return self.base_path.joinpath(*parts)

    async def upload(
        self,
        key: str,
        reader: BinaryIO,
        content_type: str,
        size: int,
        cache_control: Optional[str] = None,
    ) -> str:
        """Write the stream to disk and verify the byte count"""
        file_path = self._resolve(key)

        def write_file() -> int:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            written = 0
            with open(file_path, "wb") as f:
                while True:
                    chunk = reader.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    f.write(chunk)
                    written += len(chunk)
            return written

        # Use executor to avoid blocking event loop
        loop = asyncio.get_event_loop()
        try:
            written = await loop.run_in_executor(None, write_file)
        except OSError as e:
            record_upload(self.name, size, ok=False)
            raise BackendUnavailableError(f"failed to write file {file_path}: {e}") from e

        if written != size:
            record_upload(self.name, size, ok=False)
            raise SizeMismatchError(key, size, written)

        record_upload(self.name, size, ok=True)
        logger.debug(f"Fallback storage: saved {key} to {file_path}")
        return self.get_url(key)

    async def delete(self, key: str) -> None:
        """Remove the file, then prune directories left empty"""
        file_path = self._resolve(key)

        def remove_file():
            file_path.unlink(missing_ok=True)
            self._prune_empty_dirs(file_path.parent)

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, remove_file)
        except OSError as e:
            record_delete(self.name, ok=False)
            raise BackendUnavailableError(f"failed to delete file {file_path}: {e}") from e
        record_delete(self.name, ok=True)

    def _prune_empty_dirs(self, directory: Path) -> None:
        """Remove empty directories from `directory` upward, never touching base_path"""
        while directory != self.base_path and self.base_path in directory.parents:
            try:
                if any(directory.iterdir()):
                    return
                directory.rmdir()
            except FileNotFoundError:
                return
            except OSError as e:
                # Lost a race with a concurrent upload into this directory
                logger.debug(f"Stopped pruning at {directory}: {e}")
                return
            directory = directory.parent

    def get_url(self, key: str) -> str:
        """Get public URL for a stored object"""
        return f"{self.base_url}/{normalize_key(key)}"

    async def generate_presigned_url(self, key: str, content_type: str, expiration: int) -> str:
        raise NotSupportedError("presigned URLs not supported by fallback storage")

    async def exists(self, key: str) -> bool:
        file_path = self._resolve(key)

        def stat_file() -> bool:
            try:
                os.stat(file_path)
            except FileNotFoundError:
                return False
            return True

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, stat_file)
        except OSError as e:
            raise BackendUnavailableError(f"failed to check if file exists: {e}") from e

    async def list_keys(self, prefix: str = "") -> List[str]:
        prefix = normalize_key(prefix)

        def walk() -> List[str]:
            keys = []
            for path in self.base_path.rglob("*"):
                if not path.is_file():
                    continue
                key = path.relative_to(self.base_path).as_posix()
                if key.startswith(prefix):
                    keys.append(key)
            return sorted(keys)

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, walk)
        except OSError as e:
            raise BackendUnavailableError(f"failed to list {self.base_path}: {e}") from e
