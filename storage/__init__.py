"""
Storage module for named binary objects.

Supports a local directory and a GridFS bucket as interchangeable backends.
"""
from storage.base import ByteSink, StorageBackend
from storage.factory import create_storage_backend
from storage.repository import Repository

__all__ = ["ByteSink", "StorageBackend", "Repository", "create_storage_backend"]
