"""
Local filesystem storage backend.

Each object is one file directly inside the base directory.
"""
import shutil
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import aiofiles
import structlog

from storage.base import ByteSink, StorageBackend
from storage.errors import (
    ObjectNotFoundError,
    PathTraversalError,
    StorageAccessError,
    StorageInitError,
)

logger = structlog.get_logger()

COPY_BUFFER_SIZE = 32 * 1024
BASE_DIR_MODE = 0o750


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize local storage backend.

        Args:
            config: Configuration with:
                - base_path: Root directory for storage
                - name: Backend name (optional)

        Raises:
            StorageInitError: If the base path is not a usable directory
        """
        super().__init__(config)
        self.base_path = Path(config.get("base_path", "./files")).resolve()
        self._prepare_base_path()

    def _prepare_base_path(self) -> None:
        base = self.base_path
        try:
            base.stat()
        except FileNotFoundError:
            try:
                base.mkdir(mode=BASE_DIR_MODE)
            except OSError as e:
                raise StorageInitError(f"creating '{base}': {e}") from e
            logger.info("Created storage directory", base_path=str(base))
            return
        except PermissionError as e:
            raise StorageInitError(f"Wrong permissions to access '{base}'") from e
        except OSError as e:
            raise StorageInitError(f"accessing '{base}': {e}") from e

        if not base.is_dir():
            raise StorageInitError(f"'{base}' is not a directory")

    def _resolve_path(self, name: str) -> Path:
        """
        Resolve and validate an object path.

        Args:
            name: Object name

        Returns:
            Absolute Path object

        Raises:
            PathTraversalError: If name does not resolve to a file directly
                inside the base directory
        """
        if not name:
            raise PathTraversalError(name)

        full_path = (self.base_path / name).resolve()

        # Objects are never nested, so anything else has escaped the root.
        if full_path.parent != self.base_path:
            raise PathTraversalError(name)

        return full_path

    async def retrieve(self, name: str, sink: ByteSink) -> int:
        """Stream file contents into sink."""
        full_path = self._resolve_path(name)

        f = None
        written = 0
        try:
            async with aiofiles.open(full_path, "rb") as f:
                while True:
                    try:
                        chunk = await f.read(COPY_BUFFER_SIZE)
                    except OSError as e:
                        raise StorageAccessError(name, e) from e
                    if not chunk:
                        break
                    await sink.write(chunk)
                    written += len(chunk)
        except OSError as e:
            # f is only set once the open succeeded; sink errors pass through
            if f is not None:
                raise
            if isinstance(e, FileNotFoundError):
                raise ObjectNotFoundError(name) from e
            raise StorageAccessError(name, e) from e

        return written

    async def store(self, name: str, source: AsyncIterator[bytes]) -> Optional[str]:
        """Write source into the file, truncating previous content."""
        full_path = self._resolve_path(name)

        f = None
        written = 0
        try:
            async with aiofiles.open(full_path, "wb") as f:
                async for chunk in source:
                    try:
                        await f.write(chunk)
                    except OSError as e:
                        raise StorageAccessError(name, e) from e
                    written += len(chunk)
        except OSError as e:
            if f is not None:
                raise
            raise StorageAccessError(name, e) from e

        logger.debug("Stored file", name=name, size=written, path=str(full_path))
        return None

    async def close(self) -> None:
        """Nothing to release for a filesystem backend."""
        pass

    def get_status(self) -> Dict[str, Any]:
        """Get backend status."""
        try:
            usage = shutil.disk_usage(self.base_path)
            disk_info = {
                "total": usage.total,
                "used": usage.used,
                "free": usage.free,
                "percent_used": round((usage.used / usage.total) * 100, 2),
            }
        except OSError:
            disk_info = {"error": "Unable to get disk usage"}

        return {
            "name": self.name,
            "type": "filesystem",
            "base_path": str(self.base_path),
            "disk": disk_info,
        }
