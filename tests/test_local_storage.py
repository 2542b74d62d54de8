"""Tests for the local filesystem storage backend."""

import os

import pytest

from conftest import MemorySink, iter_chunks
from storage.errors import (
    ObjectNotFoundError,
    PathTraversalError,
    StorageAccessError,
    StorageInitError,
)
from storage.local import COPY_BUFFER_SIZE, LocalStorageBackend


class TestLocalBackendInit:
    """Tests for base directory handling."""

    def test_creates_missing_directory(self, storage_dir):
        backend = LocalStorageBackend({"base_path": str(storage_dir)})

        assert storage_dir.is_dir()
        assert backend.base_path == storage_dir.resolve()
        assert storage_dir.stat().st_mode & 0o700 == 0o700

    def test_accepts_existing_directory(self, tmp_path):
        (tmp_path / "keep.txt").write_bytes(b"x")

        backend = LocalStorageBackend({"base_path": str(tmp_path)})

        assert (backend.base_path / "keep.txt").read_bytes() == b"x"

    def test_regular_file_is_rejected(self, tmp_path):
        not_a_dir = tmp_path / "plain.txt"
        not_a_dir.write_bytes(b"data")

        with pytest.raises(StorageInitError, match="is not a directory"):
            LocalStorageBackend({"base_path": str(not_a_dir)})

    def test_missing_parent_is_rejected(self, tmp_path):
        with pytest.raises(StorageInitError, match="creating"):
            LocalStorageBackend({"base_path": str(tmp_path / "a" / "b")})


class TestLocalBackendRoundTrip:
    """Tests for store and retrieve."""

    @pytest.mark.asyncio
    async def test_store_then_retrieve(self, local_backend):
        result = await local_backend.store("report.pdf", iter_chunks(b"AB", b"C"))
        sink = MemorySink()
        written = await local_backend.retrieve("report.pdf", sink)

        assert result is None
        assert sink.data == b"ABC"
        assert written == 3

    @pytest.mark.asyncio
    async def test_overwrite_keeps_only_second_payload(self, local_backend):
        await local_backend.store("notes.txt", iter_chunks(b"first version, longer"))
        await local_backend.store("notes.txt", iter_chunks(b"second"))

        sink = MemorySink()
        await local_backend.retrieve("notes.txt", sink)

        assert sink.data == b"second"

    @pytest.mark.asyncio
    async def test_empty_object(self, local_backend):
        await local_backend.store("empty", iter_chunks())
        sink = MemorySink()

        assert await local_backend.retrieve("empty", sink) == 0
        assert sink.chunks == []

    @pytest.mark.asyncio
    async def test_retrieve_uses_bounded_chunks(self, local_backend):
        payload = os.urandom(COPY_BUFFER_SIZE * 3 + 17)
        await local_backend.store("big.bin", iter_chunks(payload))

        sink = MemorySink()
        await local_backend.retrieve("big.bin", sink)

        assert sink.data == payload
        assert max(len(chunk) for chunk in sink.chunks) <= COPY_BUFFER_SIZE
        assert len(sink.chunks) == 4


class TestLocalBackendErrors:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_missing_object(self, local_backend):
        with pytest.raises(ObjectNotFoundError) as exc_info:
            await local_backend.retrieve("missing.txt", MemorySink())

        assert exc_info.value.name == "missing.txt"
        assert "missing.txt" in str(exc_info.value)

    @pytest.mark.parametrize("name", ["", ".", "..", "../etc/passwd", "a/b", "/etc/passwd"])
    @pytest.mark.asyncio
    async def test_names_outside_root_are_rejected(self, local_backend, name):
        with pytest.raises(PathTraversalError):
            await local_backend.retrieve(name, MemorySink())
        with pytest.raises(PathTraversalError):
            await local_backend.store(name, iter_chunks(b"x"))

    @pytest.mark.asyncio
    async def test_symlink_escaping_root_is_rejected(self, local_backend, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_bytes(b"secret")
        (local_backend.base_path / "link").symlink_to(secret)

        with pytest.raises(PathTraversalError):
            await local_backend.retrieve("link", MemorySink())

    @pytest.mark.asyncio
    async def test_directory_is_access_error(self, local_backend):
        (local_backend.base_path / "subdir").mkdir()

        with pytest.raises(StorageAccessError, match="accessing 'subdir'"):
            await local_backend.retrieve("subdir", MemorySink())

    @pytest.mark.asyncio
    async def test_source_failure_propagates_from_store(self, local_backend):
        async def failing_source():
            yield b"partial"
            raise OSError("connection reset")

        with pytest.raises(OSError, match="connection reset"):
            await local_backend.store("broken.bin", failing_source())

    @pytest.mark.asyncio
    async def test_sink_failure_propagates_from_retrieve(self, local_backend):
        class BrokenSink:
            async def write(self, data: bytes) -> None:
                raise OSError("broken pipe")

        await local_backend.store("a.bin", iter_chunks(b"payload"))

        with pytest.raises(OSError, match="broken pipe") as exc_info:
            await local_backend.retrieve("a.bin", BrokenSink())

        assert not isinstance(exc_info.value, StorageAccessError)

    @pytest.mark.asyncio
    async def test_close_is_noop(self, local_backend):
        await local_backend.close()
        await local_backend.store("after-close", iter_chunks(b"ok"))

    def test_status_reports_base_path(self, local_backend):
        status = local_backend.get_status()

        assert status["type"] == "filesystem"
        assert status["base_path"] == str(local_backend.base_path)
        assert "total" in status["disk"]
