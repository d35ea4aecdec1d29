"""
In-Memory Content Store
=======================
Process-local IContentStore with the same version-token rules as the
remote API. Used offline and as the store double in tests.
"""

import asyncio
import logging
from typing import Optional

from folio.errors import ConflictError
from folio.remote.base import IContentStore, RemoteFile, WriteResult
from folio.remote.codec import blob_sha, encode_path


logger = logging.getLogger(__name__)


class InMemoryContentStore(IContentStore):
    """Dictionary-backed versioned store."""

    def __init__(self, files: Optional[dict[str, bytes]] = None):
        self._files: dict[str, tuple[bytes, str]] = {}
        self._lock = asyncio.Lock()
        self.writes: list[tuple[str, str]] = []
        for path, content in (files or {}).items():
            self._files[encode_path(path)] = (content, blob_sha(content))

    def token_for(self, path: str) -> Optional[str]:
        entry = self._files.get(encode_path(path))
        return entry[1] if entry else None

    def paths(self) -> list[str]:
        return sorted(self._files)

    async def read_file(self, path: str) -> Optional[RemoteFile]:
        entry = self._files.get(encode_path(path))
        if entry is None:
            return None
        content, token = entry
        return RemoteFile(path=path, content=content, version_token=token)

    async def write_file(
        self,
        path: str,
        content: bytes,
        message: str,
        expected_token: Optional[str] = None,
    ) -> WriteResult:
        key = encode_path(path)
        async with self._lock:
            current = self._files.get(key)
            current_token = current[1] if current else None
            if current_token != expected_token:
                if current_token is None:
                    raise ConflictError(path, details="file no longer exists")
                if expected_token is None:
                    raise ConflictError(path, details="file already exists, version token required")
                raise ConflictError(path, details=f"expected {expected_token}, store has {current_token}")

            token = blob_sha(content)
            self._files[key] = (bytes(content), token)
            self.writes.append((path, message))
        logger.debug(f"Stored {path} ({len(content)} bytes) as {token[:7]}")
        return WriteResult(path=path, version_token=token, created=current is None)
