import io
from unittest.mock import AsyncMock, MagicMock

import pytest

from eventmedia.errors import (
    BackendUnavailableError,
    BothBackendsFailedError,
    CannotRetryError,
)
from eventmedia.services.failover_storage import FailoverStorage
from eventmedia.services.storage_backend import StorageBackend


def failing_backend(error=None):
    backend = MagicMock(spec=StorageBackend)
    backend.name = "broken"
    error = error or BackendUnavailableError("remote down")
    backend.upload = AsyncMock(side_effect=error)
    backend.delete = AsyncMock(side_effect=error)
    backend.exists = AsyncMock(side_effect=error)
    backend.list_keys = AsyncMock(side_effect=error)
    backend.get_url = MagicMock(side_effect=lambda key: f"https://cdn.example.com/{key}")
    return backend


class NonSeekableReader:
    def __init__(self, data):
        self._buf = io.BytesIO(data)

    def read(self, n=-1):
        return self._buf.read(n)

    def seekable(self):
        return False


@pytest.mark.asyncio
async def test_upload_falls_back_when_primary_fails(local_storage):
    storage = FailoverStorage(primary=failing_backend(), fallback=local_storage)
    data = b"image-bytes"
    reader = io.BytesIO(data)
    reader.read()  # primary may have consumed the stream

    url = await storage.upload("events/a/original.jpeg", reader, "image/jpeg", len(data))

    assert url == local_storage.get_url("events/a/original.jpeg")
    assert await local_storage.exists("events/a/original.jpeg")
    assert (local_storage.base_path / "events/a/original.jpeg").read_bytes() == data


@pytest.mark.asyncio
async def test_upload_uses_primary_when_healthy(local_storage):
    primary = MagicMock(spec=StorageBackend)
    primary.upload = AsyncMock(return_value="https://cdn.example.com/k.png")
    storage = FailoverStorage(primary=primary, fallback=local_storage)

    url = await storage.upload("k.png", io.BytesIO(b"x"), "image/png", 1, cache_control="public")

    assert url == "https://cdn.example.com/k.png"
    primary.upload.assert_awaited_once()
    assert not await local_storage.exists("k.png")


@pytest.mark.asyncio
async def test_upload_cannot_retry_non_seekable_reader(local_storage):
    storage = FailoverStorage(primary=failing_backend(), fallback=local_storage)

    with pytest.raises(CannotRetryError) as exc_info:
        await storage.upload("k.png", NonSeekableReader(b"x"), "image/png", 1)

    assert isinstance(exc_info.value.__cause__, BackendUnavailableError)
    assert not await local_storage.exists("k.png")


@pytest.mark.asyncio
async def test_upload_reports_fallback_error():
    primary = failing_backend(BackendUnavailableError("primary down"))
    fallback = failing_backend(BackendUnavailableError("disk full"))
    storage = FailoverStorage(primary=primary, fallback=fallback)

    with pytest.raises(BackendUnavailableError, match="disk full"):
        await storage.upload("k.png", io.BytesIO(b"x"), "image/png", 1)


@pytest.mark.asyncio
async def test_delete_succeeds_when_one_backend_succeeds(local_storage):
    storage = FailoverStorage(primary=failing_backend(), fallback=local_storage)
    await local_storage.upload("k.png", io.BytesIO(b"x"), "image/png", 1)

    await storage.delete("k.png")

    assert not await local_storage.exists("k.png")


@pytest.mark.asyncio
async def test_delete_fails_when_both_backends_fail():
    storage = FailoverStorage(primary=failing_backend(), fallback=failing_backend())

    with pytest.raises(BothBackendsFailedError):
        await storage.delete("k.png")


@pytest.mark.asyncio
async def test_delete_attempts_both_backends():
    primary = MagicMock(spec=StorageBackend)
    primary.delete = AsyncMock(return_value=None)
    fallback = MagicMock(spec=StorageBackend)
    fallback.delete = AsyncMock(return_value=None)

    await FailoverStorage(primary, fallback).delete("k.png")

    primary.delete.assert_awaited_once_with("k.png")
    fallback.delete.assert_awaited_once_with("k.png")


def test_get_url_always_from_primary(local_storage):
    storage = FailoverStorage(primary=failing_backend(), fallback=local_storage)
    assert storage.get_url("events/a/original.jpeg") == "https://cdn.example.com/events/a/original.jpeg"


@pytest.mark.asyncio
async def test_exists_defers_to_fallback(local_storage):
    storage = FailoverStorage(primary=failing_backend(), fallback=local_storage)
    assert not await storage.exists("k.png")

    await local_storage.upload("k.png", io.BytesIO(b"x"), "image/png", 1)
    assert await storage.exists("k.png")


@pytest.mark.asyncio
async def test_exists_errors_only_when_both_error():
    storage = FailoverStorage(primary=failing_backend(), fallback=failing_backend())
    with pytest.raises(BothBackendsFailedError):
        await storage.exists("k.png")


@pytest.mark.asyncio
async def test_list_keys_merges_backends(local_storage):
    primary = MagicMock(spec=StorageBackend)
    primary.list_keys = AsyncMock(return_value=["events/a/original.png", "events/b/original.png"])
    await local_storage.upload("events/a/original.png", io.BytesIO(b"x"), "image/png", 1)
    await local_storage.upload("events/c/original.png", io.BytesIO(b"x"), "image/png", 1)

    keys = await FailoverStorage(primary, local_storage).list_keys("events/")

    assert keys == ["events/a/original.png", "events/b/original.png", "events/c/original.png"]
