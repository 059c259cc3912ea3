# src/taskup/storage/blob.py

"""
Blob storage for task images.

Two implementations of the BlobStorage port:
- LocalBlobStorage: copies the image under a local directory, returns a file:// URL.
- HttpBlobStorage: multipart POST to an upload endpoint (httpx), returns the URL it answers with.

Both store images under the "tasks/<filename>" key, so the same image name
uploaded twice ends up in the same place.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

import httpx

from ..core.errors import BlobError

logger = logging.getLogger(__name__)

KEY_PREFIX = "tasks"


def _resolve_source(local_path: str | Path) -> Path:
    raw = str(local_path).strip()
    if raw.startswith("file://"):
        raw = raw[len("file://"):]
    path = Path(raw).expanduser()
    if not path.is_file():
        raise BlobError(f"image not found: {local_path}")
    return path


def blob_key(path: Path) -> str:
    return f"{KEY_PREFIX}/{path.name}"


class LocalBlobStorage:
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    async def upload(self, local_path: str | Path) -> str:
        src = _resolve_source(local_path)
        dest = self._root / blob_key(src)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, src, dest)
        except OSError as e:
            raise BlobError(f"failed to store image {src.name}: {e}") from e

        url = dest.resolve().as_uri()
        logger.info("Image stored %s -> %s", src, url)
        return url


class HttpBlobStorage:
    """
    Upload endpoint contract:
      POST <upload_url>  multipart: file=<bytes>, key=tasks/<filename>
      200 {"url": "<download url>"}
    """

    def __init__(
        self,
        upload_url: str,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._upload_url = upload_url
        self._timeout = httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds))
        self._client = client

    async def _post(self, client: httpx.AsyncClient, src: Path) -> httpx.Response:
        content = await asyncio.to_thread(src.read_bytes)
        return await client.post(
            self._upload_url,
            data={"key": blob_key(src)},
            files={"file": (src.name, content)},
        )

    async def upload(self, local_path: str | Path) -> str:
        src = _resolve_source(local_path)

        try:
            if self._client is not None:
                response = await self._post(self._client, src)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await self._post(client, src)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise BlobError(f"upload rejected ({e.response.status_code}) for {src.name}") from e
        except httpx.HTTPError as e:
            raise BlobError(f"upload failed for {src.name}: {e}") from e
        except (OSError, ValueError) as e:
            raise BlobError(f"upload failed for {src.name}: {e}") from e

        url = payload.get("url") if isinstance(payload, dict) else None
        if not isinstance(url, str) or not url.strip():
            raise BlobError(f"upload response for {src.name} has no url")

        logger.info("Image uploaded %s -> %s", src.name, url)
        return url.strip()


def create_blob_storage(settings) -> LocalBlobStorage | HttpBlobStorage:
    upload_url = getattr(settings, "blob_upload_url", None)
    if upload_url:
        return HttpBlobStorage(
            upload_url,
            timeout_seconds=float(getattr(settings, "blob_timeout_seconds", 30.0)),
        )
    return LocalBlobStorage(settings.blob_dir)
