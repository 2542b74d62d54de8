"""
Shared fixtures for file storage tests.
"""
from typing import AsyncIterator, Dict, List, Optional, Tuple

import httpx
import pytest

from api.config import Settings
from api.main import create_application
from storage.base import ByteSink, StorageBackend
from storage.errors import ObjectNotFoundError
from storage.local import LocalStorageBackend
from storage.repository import Repository


class MemorySink:
    """ByteSink collecting everything written to it."""

    def __init__(self):
        self.chunks: List[bytes] = []

    async def write(self, data: bytes) -> None:
        self.chunks.append(data)

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


class RecordingBackend(StorageBackend):
    """In-memory backend that records every call it receives."""

    def __init__(self):
        super().__init__({"name": "recording"})
        self.objects: Dict[str, bytes] = {}
        self.calls: List[Tuple[str, str]] = []
        self.close_count = 0

    async def store(self, name: str, source: AsyncIterator[bytes]) -> Optional[str]:
        self.calls.append(("store", name))
        self.objects[name] = b"".join([chunk async for chunk in source])
        return f"id-{name}"

    async def retrieve(self, name: str, sink: ByteSink) -> int:
        self.calls.append(("retrieve", name))
        if name not in self.objects:
            raise ObjectNotFoundError(name)
        await sink.write(self.objects[name])
        return len(self.objects[name])

    async def close(self) -> None:
        self.close_count += 1


async def iter_chunks(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


@pytest.fixture
def storage_dir(tmp_path):
    """Base directory for the local backend (not yet created)."""
    return tmp_path / "files"


@pytest.fixture
def local_backend(storage_dir):
    return LocalStorageBackend({"name": "local", "base_path": str(storage_dir)})


@pytest.fixture
def test_settings(storage_dir):
    return Settings(
        STORAGE_BACKEND="file",
        STORAGE_PATH=str(storage_dir),
        ENABLE_METRICS=False,
    )


@pytest.fixture
def repository(local_backend):
    return Repository(local_backend)


@pytest.fixture
def recording_backend():
    return RecordingBackend()


async def make_client(settings: Settings, repository: Repository) -> httpx.AsyncClient:
    app = create_application(settings, repository)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.fixture
async def test_client(test_settings, repository):
    """HTTP client over the local filesystem backend."""
    async with await make_client(test_settings, repository) as client:
        yield client


@pytest.fixture
async def recording_client(test_settings, recording_backend):
    """HTTP client over the recording backend."""
    async with await make_client(test_settings, Repository(recording_backend)) as client:
        yield client
