"""
GridFS storage backend.

Objects are stored as chunked GridFS files in one bucket of a MongoDB
database. Uploading a name twice creates a new revision; downloads always
read the most recent one.
"""
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote_plus

import structlog
from gridfs import AsyncGridFSBucket
from gridfs.errors import NoFile
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from storage.base import ByteSink, StorageBackend
from storage.errors import (
    ObjectNotFoundError,
    StorageAccessError,
    StorageError,
    StorageInitError,
)

logger = structlog.get_logger()

MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


def build_mongo_uri(host: str, username: str = "", password: str = "") -> str:
    """
    Build a MongoDB connection URI.

    Args:
        host: host[:port], optionally prefixed with a mongodb scheme
        username: Username to authenticate with (optional)
        password: Password for username (optional)

    Returns:
        Connection URI of the form mongodb://[user[:pass]@]host
    """
    scheme = "mongodb://"
    for candidate in MONGO_SCHEMES:
        if host.startswith(candidate):
            scheme = candidate
            host = host[len(candidate):]
            break

    credentials = ""
    if username:
        credentials = quote_plus(username)
        if password:
            credentials += ":" + quote_plus(password)
        else:
            logger.warning("User given without password", username=username)
        credentials += "@"

    return f"{scheme}{credentials}{host}"


class GridFSStorageBackend(StorageBackend):
    """GridFS storage backend."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize GridFS storage backend.

        Args:
            config: Configuration with:
                - host: MongoDB host[:port]
                - username: Username (optional)
                - password: Password (optional)
                - database: Database name (default "test")
                - bucket: GridFS bucket name (default "example")
                - chunk_size: Chunk size in bytes (optional)
                - timeout_ms: Server selection timeout (default 5000)
        """
        super().__init__(config)
        self.host = config.get("host") or ""
        self.database = config.get("database") or "test"
        self.bucket_name = config.get("bucket") or "example"
        self.chunk_size = config.get("chunk_size")
        self.timeout_ms = config.get("timeout_ms", 5000)

        if not self.host:
            raise StorageInitError("parameter 'url' is empty")

        self._uri = build_mongo_uri(
            self.host,
            config.get("username") or "",
            config.get("password") or "",
        )
        self._client = None
        self._bucket = None

    async def initialize(self) -> None:
        """Connect to MongoDB and bind the bucket."""
        try:
            self._client = AsyncMongoClient(
                self._uri, serverSelectionTimeoutMS=self.timeout_ms
            )
            await self._client.admin.command("ping")
        except (PyMongoError, ValueError) as e:
            await self.close()
            raise StorageInitError(f"connecting to '{self.host}': {e}") from e

        bucket_kwargs: Dict[str, Any] = {"bucket_name": self.bucket_name}
        if self.chunk_size:
            bucket_kwargs["chunk_size_bytes"] = self.chunk_size

        try:
            self._bucket = AsyncGridFSBucket(self._client[self.database], **bucket_kwargs)
        except (PyMongoError, ValueError) as e:
            await self.close()
            raise StorageInitError(
                f"accessing bucket '{self.bucket_name}' in '{self.database}' "
                f"on '{self.host}': {e}"
            ) from e

        logger.info(
            "Connected to GridFS",
            host=self.host,
            database=self.database,
            bucket=self.bucket_name,
        )

    def _get_bucket(self, name: str) -> AsyncGridFSBucket:
        if self._bucket is None:
            raise StorageError("GridFS backend is not initialized", name=name)
        return self._bucket

    async def retrieve(self, name: str, sink: ByteSink) -> int:
        """Stream the latest revision of name into sink, chunk by chunk."""
        bucket = self._get_bucket(name)

        try:
            grid_out = await bucket.open_download_stream_by_name(name)
        except NoFile as e:
            raise ObjectNotFoundError(
                name, f"no file named '{name}' in bucket '{self.bucket_name}'"
            ) from e
        except PyMongoError as e:
            raise StorageAccessError(name, e) from e

        written = 0
        try:
            while True:
                try:
                    chunk = await grid_out.readchunk()
                except PyMongoError as e:
                    raise StorageAccessError(name, e) from e
                if not chunk:
                    break
                await sink.write(chunk)
                written += len(chunk)
        finally:
            await grid_out.close()

        return written

    async def store(self, name: str, source: AsyncIterator[bytes]) -> Optional[str]:
        """Upload source as a new revision of name."""
        bucket = self._get_bucket(name)
        grid_in = bucket.open_upload_stream(name)

        written = 0
        try:
            async for chunk in source:
                await grid_in.write(chunk)
                written += len(chunk)
            await grid_in.close()
        except PyMongoError as e:
            logger.error(
                "GridFS upload failed",
                name=name,
                bucket=self.bucket_name,
                bytes_sent=written,
                error=str(e),
            )
            raise StorageAccessError(name, e) from e
        except Exception as e:
            # Chunks already sent stay in the chunks collection without a files
            # document; they are never visible to downloads.
            logger.warning(
                "GridFS upload interrupted",
                name=name,
                bucket=self.bucket_name,
                bytes_sent=written,
                error=str(e),
            )
            raise

        return str(grid_in._id)

    async def close(self) -> None:
        """Close the MongoDB client."""
        client, self._client = self._client, None
        self._bucket = None
        if client is not None:
            await client.close()

    def get_status(self) -> Dict[str, Any]:
        """Get backend status."""
        return {
            "name": self.name,
            "type": "gridfs",
            "host": self.host,
            "database": self.database,
            "bucket": self.bucket_name,
            "connected": self._client is not None,
        }
