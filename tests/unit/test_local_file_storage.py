import io

import pytest

from eventmedia.errors import InvalidKeyError, NotSupportedError, SizeMismatchError


@pytest.mark.asyncio
async def test_upload_exists_delete_round_trip(local_storage):
    data = b"hello image"
    url = await local_storage.upload("events/2024/01/01/a-1234abcd/original.jpeg", io.BytesIO(data), "image/jpeg", len(data))

    assert url == "http://localhost:8080/static/uploads/events/2024/01/01/a-1234abcd/original.jpeg"
    assert await local_storage.exists("events/2024/01/01/a-1234abcd/original.jpeg")
    assert (local_storage.base_path / "events/2024/01/01/a-1234abcd/original.jpeg").read_bytes() == data

    await local_storage.delete("events/2024/01/01/a-1234abcd/original.jpeg")
    assert not await local_storage.exists("events/2024/01/01/a-1234abcd/original.jpeg")


@pytest.mark.asyncio
async def test_delete_prunes_empty_directories_but_keeps_base(local_storage):
    key = "events/2024/01/01/a-1234abcd/original.jpeg"
    await local_storage.upload(key, io.BytesIO(b"x"), "image/jpeg", 1)

    await local_storage.delete(key)

    assert local_storage.base_path.exists()
    assert not (local_storage.base_path / "events").exists()


@pytest.mark.asyncio
async def test_delete_stops_pruning_at_non_empty_directory(local_storage):
    await local_storage.upload("events/2024/01/01/a/original.jpeg", io.BytesIO(b"x"), "image/jpeg", 1)
    await local_storage.upload("events/2024/01/02/b/original.jpeg", io.BytesIO(b"y"), "image/jpeg", 1)

    await local_storage.delete("events/2024/01/01/a/original.jpeg")

    assert not (local_storage.base_path / "events/2024/01/01").exists()
    assert (local_storage.base_path / "events/2024/01/02/b/original.jpeg").exists()
    assert (local_storage.base_path / "events/2024").is_dir()


@pytest.mark.asyncio
async def test_delete_missing_key_is_not_an_error(local_storage):
    await local_storage.delete("events/never/uploaded.jpeg")


@pytest.mark.asyncio
async def test_size_mismatch(local_storage):
    with pytest.raises(SizeMismatchError) as exc_info:
        await local_storage.upload("a/b.png", io.BytesIO(b"12345"), "image/png", 10)
    assert exc_info.value.expected == 10
    assert exc_info.value.written == 5


@pytest.mark.asyncio
async def test_leading_slash_is_stripped(local_storage):
    await local_storage.upload("/abs/key.png", io.BytesIO(b"x"), "image/png", 1)
    assert (local_storage.base_path / "abs/key.png").exists()
    assert local_storage.get_url("/abs/key.png") == "http://localhost:8080/static/uploads/abs/key.png"


@pytest.mark.asyncio
async def test_parent_traversal_rejected(local_storage):
    with pytest.raises(InvalidKeyError):
        await local_storage.upload("../escape.png", io.BytesIO(b"x"), "image/png", 1)
    with pytest.raises(InvalidKeyError):
        await local_storage.exists("events/../../escape.png")
    assert not (local_storage.base_path.parent / "escape.png").exists()


@pytest.mark.asyncio
async def test_presigned_urls_not_supported(local_storage):
    with pytest.raises(NotSupportedError):
        await local_storage.generate_presigned_url("a.png", "image/png", 3600)


@pytest.mark.asyncio
async def test_list_keys(local_storage):
    for key in ("events/x/original.png", "events/x/thumbnail.png", "other/y.png"):
        await local_storage.upload(key, io.BytesIO(b"x"), "image/png", 1)

    assert await local_storage.list_keys("events/") == ["events/x/original.png", "events/x/thumbnail.png"]
    assert len(await local_storage.list_keys()) == 3
