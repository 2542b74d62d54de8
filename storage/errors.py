"""
Storage error types.

Backends raise these; the request operations convert them into HTTP
responses. Initialization errors are fatal and abort startup.
"""
from typing import Optional


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(self, message: str, *, name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.name = name

    def __str__(self) -> str:
        return self.message


class ObjectNotFoundError(StorageError):
    """Raised when no object is stored under the requested name."""

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"'{name}' not found", name=name)


class StorageAccessError(StorageError):
    """Raised when the backend fails to read or write an object."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"accessing '{name}': {cause}", name=name)
        self.cause = cause


class PathTraversalError(StorageError):
    """Raised when a name would resolve outside the storage root."""

    def __init__(self, name: str):
        super().__init__(f"'{name}' would escape storage directory", name=name)


class StorageInitError(StorageError):
    """Raised when a backend cannot be set up."""
