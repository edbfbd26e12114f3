"""Object storage for uploaded images.

``put`` returns a provider-style object (``url``, ``pathname``,
``contentType``, ...) that is handed back to API callers unchanged.
"""
import logging
import os
import re
import uuid
from urllib.parse import quote

import httpx

from damage_intake.config import Settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    pass


def safe_pathname(filename: str) -> str:
    """Strip directories and odd characters, then add a random suffix."""
    name = os.path.basename(filename.replace("\\", "/")) or "upload"
    name = _UNSAFE_CHARS.sub("_", name)
    stem, ext = os.path.splitext(name)
    return f"{stem or 'upload'}-{uuid.uuid4().hex[:12]}{ext.lower()}"


class ObjectStorage:
    async def put(self, filename: str, content: bytes, content_type: str | None = None) -> dict:
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    """Files under ``root_dir``, served by the API at ``/files``."""

    def __init__(self, root_dir: str, public_base_url: str):
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")

    async def put(self, filename: str, content: bytes, content_type: str | None = None) -> dict:
        pathname = safe_pathname(filename)
        file_path = os.path.join(self.root_dir, pathname)
        try:
            os.makedirs(self.root_dir, exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(f"Could not write {pathname}") from e

        logger.info("Stored %s (%d bytes)", pathname, len(content))
        return {
            "url": f"{self.public_base_url}/files/{quote(pathname)}",
            "downloadUrl": f"{self.public_base_url}/files/{quote(pathname)}?download=1",
            "pathname": pathname,
            "contentType": content_type or "application/octet-stream",
            "contentDisposition": f'inline; filename="{pathname}"',
            "size": len(content),
        }


class BlobObjectStorage(ObjectStorage):
    """Remote blob store accepting ``PUT /<pathname>`` with a bearer token."""

    def __init__(
        self,
        api_url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _headers(self, content_type: str | None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "x-add-random-suffix": "1",
            "x-access": "public",
        }
        if content_type:
            headers["x-content-type"] = content_type
        return headers

    async def put(self, filename: str, content: bytes, content_type: str | None = None) -> dict:
        if not self.token:
            raise StorageError("BLOB_READ_WRITE_TOKEN is not configured")

        pathname = os.path.basename(filename.replace("\\", "/")) or "upload"
        url = f"{self.api_url}/{quote(pathname)}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.put(url, content=content, headers=self._headers(content_type))
                response.raise_for_status()
                blob = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StorageError(f"Blob upload failed for {pathname}") from e

        if not isinstance(blob, dict) or "url" not in blob:
            raise StorageError(f"Blob store returned no url for {pathname}")
        logger.info("Uploaded %s to blob store: %s", pathname, blob["url"])
        return blob


def uploads_dir(settings: Settings) -> str:
    return os.path.join(settings.data_dir, "uploads")


def build_storage(settings: Settings) -> ObjectStorage:
    if settings.storage_backend == "blob":
        return BlobObjectStorage(settings.blob_api_url, settings.blob_read_write_token)
    if settings.storage_backend != "local":
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.storage_backend!r}")
    return LocalObjectStorage(uploads_dir(settings), settings.public_base_url)
