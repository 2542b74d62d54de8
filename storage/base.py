"""
Abstract base class for storage backends.
"""
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional, Protocol


class ByteSink(Protocol):
    """Destination for retrieved bytes."""

    async def write(self, data: bytes) -> None:
        ...


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize storage backend.

        Args:
            config: Backend configuration dictionary
        """
        self.config = config
        self.name = config.get("name", "unknown")

    async def initialize(self) -> None:
        """Set up resources that need I/O before the first request."""
        pass

    @abstractmethod
    async def store(self, name: str, source: AsyncIterator[bytes]) -> Optional[str]:
        """
        Consume a byte stream and store it under name.

        An existing object with the same name is replaced.

        Args:
            name: Object name
            source: Async iterator of content chunks

        Returns:
            Backend-assigned identifier of the stored object, or None if
            the backend has no natural identifier
        """
        pass

    @abstractmethod
    async def retrieve(self, name: str, sink: ByteSink) -> int:
        """
        Stream the object stored under name into sink.

        Args:
            name: Object name
            sink: Destination with an async write() method

        Returns:
            Number of bytes written to sink

        Raises:
            ObjectNotFoundError: If nothing is stored under name
            StorageAccessError: If the backend fails while reading
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        pass

    def get_status(self) -> Dict[str, Any]:
        """
        Get backend status.

        Returns:
            Dictionary with backend status information
        """
        return {
            "name": self.name,
            "type": self.__class__.__name__,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"
