"""
Download and upload operations for named files.
"""
from typing import AsyncIterator

import structlog
from fastapi import status
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.requests import ClientDisconnect
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from api.models.file import FileMeta
from api.utils import metrics
from api.utils.streaming import drain, limit_stream
from storage.errors import ObjectNotFoundError, PathTraversalError, StorageError
from storage.repository import Repository

logger = structlog.get_logger()


def error_status(exc: Exception, distinct_not_found: bool = False) -> int:
    """Map a storage failure to a response status."""
    if isinstance(exc, PathTraversalError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ObjectNotFoundError) and distinct_not_found:
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class FileDownloadResponse(Response):
    """
    Response that is also the sink the repository streams into.

    The status line is sent with the first chunk, so a failure before any
    byte was produced still turns into a proper error response. A failure
    after that can only abort the transfer.
    """

    media_type = "application/octet-stream"

    def __init__(
        self,
        repository: Repository,
        name: str,
        path: str,
        distinct_not_found: bool = False,
    ):
        self.repository = repository
        self.name = name
        self.path = path
        self.distinct_not_found = distinct_not_found
        self.status_code = status.HTTP_200_OK
        self.background = None
        self.init_headers()
        self.bytes_sent = 0
        self._send = None
        self._started = False

    async def write(self, data: bytes) -> None:
        if not data:
            return
        if not self._started:
            await self._start()
        await self._send({"type": "http.response.body", "body": data, "more_body": True})
        self.bytes_sent += len(data)

    async def _start(self) -> None:
        await self._send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self.raw_headers,
        })
        self._started = True

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self._send = send
        try:
            await self.repository.retrieve(self.name, self)
        except (StorageError, OSError) as exc:
            if self._started:
                logger.error(
                    "Download aborted",
                    path=self.path,
                    name=self.name,
                    bytes_sent=self.bytes_sent,
                    error=str(exc),
                )
                metrics.record_request("download", status.HTTP_500_INTERNAL_SERVER_ERROR, self.bytes_sent)
                raise
            code = error_status(exc, self.distinct_not_found)
            text = f"retrieving '{self.name}': {exc}"
            logger.warning("Download failed", path=self.path, status=code, message=text)
            metrics.record_request("download", code)
            await PlainTextResponse(text, status_code=code)(scope, receive, send)
            return

        if not self._started:
            await self._start()
        await send({"type": "http.response.body", "body": b"", "more_body": False})
        logger.info("Download complete", path=self.path, status=self.status_code, size=self.bytes_sent)
        metrics.record_request("download", self.status_code, self.bytes_sent)


class FileService:
    """Operations invoked by the request dispatcher."""

    @staticmethod
    def download(
        repository: Repository,
        name: str,
        path: str,
        distinct_not_found: bool = False,
    ) -> Response:
        """
        Build the response that streams name to the client.

        Nothing is read from the backend until the server sends the
        response.
        """
        return FileDownloadResponse(repository, name, path, distinct_not_found)

    @staticmethod
    async def upload(
        repository: Repository,
        name: str,
        path: str,
        body: AsyncIterator[bytes],
        max_size: int,
    ) -> Response:
        """
        Store the request body under name.

        The body is truncated to max_size bytes and whatever remains is
        drained before returning, whether the store succeeded or not.
        """
        limited = limit_stream(body, max_size)
        try:
            file_id = await repository.store(name, limited)
        except (StorageError, ClientDisconnect, OSError) as exc:
            code = error_status(exc)
            text = f"uploading '{name}': {str(exc) or type(exc).__name__}"
            logger.warning("Upload failed", path=path, status=code, message=text)
            metrics.record_request("upload", code)
            return PlainTextResponse(text, status_code=code)
        finally:
            await limited.aclose()
            discarded = await drain(body)
            if discarded:
                logger.info("Discarded unread request body", path=path, limit=max_size, discarded=discarded)

        meta = FileMeta(id=file_id, name=name)
        logger.info("Upload complete", path=path, status=status.HTTP_200_OK, id=file_id)
        metrics.record_request("upload", status.HTTP_200_OK)
        return JSONResponse(content=meta.model_dump(by_alias=True))
