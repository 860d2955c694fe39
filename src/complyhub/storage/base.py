"""
Object storage interface.

Policy PDFs, evidence uploads and export archives are written through an
``ObjectStore``. Keys are always prefixed with the organization id, e.g.
``{org_id}/policies/{policy_id}/v1-1718000000000-Access_Policy.pdf``.
"""

from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from complyhub.server.config import StorageSettings

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_file_name(name: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9.-]`` with ``_``."""
    return _UNSAFE_CHARS.sub("_", name)


def epoch_ms() -> int:
    return int(time.time() * 1000)


@runtime_checkable
class ObjectStore(Protocol):
    """Async key/value blob store."""

    async def put_object(self, key: str, body: bytes, content_type: str) -> None: ...

    async def get_object(self, key: str) -> bytes: ...

    async def delete_object(self, key: str) -> None: ...

    async def presigned_url(self, key: str, expires_in: int) -> str: ...


def build_object_store(settings: StorageSettings) -> ObjectStore | None:
    """
    Build the configured store, or None when storage is disabled.

    S3 without a bucket counts as disabled.
    """
    if settings.backend == "s3":
        if not settings.bucket:
            return None
        from complyhub.storage.s3 import S3ObjectStore

        return S3ObjectStore(
            bucket=settings.bucket,
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        )

    if settings.backend == "filesystem":
        from complyhub.storage.filesystem import FilesystemObjectStore

        return FilesystemObjectStore(settings.root_path)

    return None
