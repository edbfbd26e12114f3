import httpx
import pytest

from damage_intake.config import Settings
from damage_intake.services.storage import (
    BlobObjectStorage,
    LocalObjectStorage,
    StorageError,
    build_storage,
    safe_pathname,
)


def test_safe_pathname_strips_directories_and_adds_suffix():
    name = safe_pathname("../../etc/before_my photo.JPG")
    assert "/" not in name
    assert name.startswith("before_my_photo-")
    assert name.endswith(".jpg")
    assert safe_pathname("a.png") != safe_pathname("a.png")


@pytest.mark.asyncio
async def test_local_storage_writes_file(tmp_path):
    storage = LocalObjectStorage(str(tmp_path / "uploads"), "http://localhost:8000/")

    blob = await storage.put("before_car.jpg", b"\xff\xd8data", "image/jpeg")

    assert blob["url"].startswith("http://localhost:8000/files/before_car-")
    assert blob["contentType"] == "image/jpeg"
    assert blob["size"] == 6
    assert (tmp_path / "uploads" / blob["pathname"]).read_bytes() == b"\xff\xd8data"


@pytest.mark.asyncio
async def test_blob_storage_puts_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["auth"] = request.headers["authorization"]
        seen["type"] = request.headers["x-content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json={
            "url": "https://store.test/after_car-abc.jpg",
            "pathname": "after_car-abc.jpg",
            "contentType": "image/jpeg",
        })

    storage = BlobObjectStorage("https://blob.test", "rw-token", transport=httpx.MockTransport(handler))
    blob = await storage.put("after_car.jpg", b"img", "image/jpeg")

    assert blob["url"] == "https://store.test/after_car-abc.jpg"
    assert seen == {"method": "PUT", "auth": "Bearer rw-token", "type": "image/jpeg", "body": b"img"}


@pytest.mark.asyncio
async def test_blob_storage_http_error_raises_storage_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    storage = BlobObjectStorage("https://blob.test", "rw-token", transport=transport)

    with pytest.raises(StorageError):
        await storage.put("before.jpg", b"img", "image/jpeg")


@pytest.mark.asyncio
async def test_blob_storage_requires_token():
    with pytest.raises(StorageError):
        await BlobObjectStorage("https://blob.test", "").put("before.jpg", b"img")


def test_build_storage_selects_backend():
    local = build_storage(Settings(database_url="sqlite://", storage_backend="local", data_dir="/tmp/x"))
    assert isinstance(local, LocalObjectStorage)
    blob = build_storage(Settings(database_url="sqlite://", storage_backend="BLOB", blob_read_write_token="t"))
    assert isinstance(blob, BlobObjectStorage)
    with pytest.raises(ValueError):
        build_storage(Settings(database_url="sqlite://", storage_backend="s3"))
