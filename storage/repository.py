"""
Process-wide repository over a single storage backend.
"""
from typing import AsyncIterator, Optional

import structlog

from storage.base import ByteSink, StorageBackend

logger = structlog.get_logger()


class Repository:
    """
    Long-lived handle combining one backend with lifecycle management.

    Created once at startup and shared by all requests. Concurrent stores
    under the same name are not serialized; the last one to finish wins.
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def initialize(self) -> None:
        await self.backend.initialize()
        logger.info("Storage repository ready", **self.backend.get_status())

    async def store(self, name: str, source: AsyncIterator[bytes]) -> Optional[str]:
        return await self.backend.store(name, source)

    async def retrieve(self, name: str, sink: ByteSink) -> int:
        return await self.backend.retrieve(name, sink)

    async def close(self) -> None:
        """Close the backend. Only the first call has any effect."""
        if self._closed:
            return
        self._closed = True
        await self.backend.close()
        logger.info("Storage repository closed", backend=repr(self.backend))
