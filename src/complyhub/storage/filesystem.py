"""
Filesystem object store for single-node deployments and development.

Objects live under ``root`` at their key path. Keys that resolve outside
the root are rejected.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from complyhub.exceptions import StorageError

logger = logging.getLogger(__name__)


class FilesystemObjectStore:
    """ObjectStore that writes objects to a local directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith("/"):
            raise StorageError("Invalid object key", key=key)
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root):
            raise StorageError("Object key escapes storage root", key=key)
        return path

    async def put_object(self, key: str, body: bytes, content_type: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(body)
        except OSError as e:
            raise StorageError(f"Failed to write object: {e}", key=key, operation="put") from e
        logger.debug("Stored %s (%d bytes, %s)", key, len(body), content_type)

    async def get_object(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(f"Failed to read object: {e}", key=key, operation="get") from e

    async def delete_object(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Failed to delete object: {e}", key=key, operation="delete") from e

    async def presigned_url(self, key: str, expires_in: int) -> str:
        # Local files have no expiry; the URL is the file location.
        return self._path_for(key).as_uri()
