"""
File storage backends.

Backends store raw bytes under a generated key and hand back the key plus a
URL for it. LocalStorage writes through anyio so the event loop is never
blocked on disk I/O.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Dict

import anyio

from warp_server.errors import WarpError

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract storage backend interface."""

    @abstractmethod
    async def upload(self, filename: str, data: bytes) -> Dict[str, str]:
        """Store `data` and return {"key": ..., "url": ...}"""

    @abstractmethod
    async def destroy(self, key: str) -> Dict[str, str]:
        """Remove a stored file and return {"key": ..., "deleted_at": ...}"""

    @abstractmethod
    def url(self, key: str) -> str:
        """Public URL for a stored key"""


class LocalStorage(StorageBackend):
    """Local filesystem storage rooted at `path`."""

    def __init__(self, path: str = "./uploads", base_url: str = "/files"):
        self.path = anyio.Path(path)
        self.base_url = base_url.rstrip("/")

    def make_key(self, filename: str) -> str:
        """Timestamped, randomized key keeping only the file's base name"""
        basename = PurePosixPath(filename.replace("\\", "/")).name
        if not basename or basename in (".", ".."):
            raise WarpError(WarpError.Code.FileError, "Invalid file name")
        now = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        return f"{now}-{secrets.token_hex(8)}-{basename}"

    def url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def _resolve(self, key: str) -> anyio.Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise WarpError(WarpError.Code.FileError, "Invalid file key")
        return self.path / key

    async def upload(self, filename: str, data: bytes) -> Dict[str, str]:
        key = self.make_key(filename)
        target = self._resolve(key)
        try:
            await self.path.mkdir(parents=True, exist_ok=True)
            await target.write_bytes(data)
        except OSError:
            logger.exception("Could not save file to path %s", target)
            raise WarpError(WarpError.Code.FileError, "Could not save file to path")
        logger.debug("Stored %d bytes as %s", len(data), key)
        return {"key": key, "url": self.url(key)}

    async def destroy(self, key: str) -> Dict[str, str]:
        target = self._resolve(key)
        try:
            await target.unlink()
        except FileNotFoundError:
            raise WarpError(WarpError.Code.FileError, "File does not exist")
        except OSError:
            logger.exception("Could not destroy file %s", target)
            raise WarpError(WarpError.Code.FileError, "Could not destroy file")
        return {"key": key, "deleted_at": datetime.now(timezone.utc).isoformat()}
