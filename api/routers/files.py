"""
Files endpoint - request dispatch for /files/<name>.

Every request goes through one route: the path is checked against
FILES_PATH_PATTERN, then the method selects download or upload.
"""
from typing import Tuple

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse, Response
from fastapi.routing import APIRoute
from starlette.routing import Match
from starlette.types import Receive, Scope, Send
import structlog

from api.dependencies import AppSettings, StorageRepository
from api.services.file_service import FileService
from api.utils import metrics
from api.utils.validators import (
    FILES_PATH_PATTERN,
    InvalidObjectNameError,
    extract_object_name,
    validate_object_name,
)

logger = structlog.get_logger()

ALLOWED_METHODS = ("GET", "POST")


class AnyMethodRoute(APIRoute):
    """
    Route that passes every request method to its endpoint.

    Starlette answers a method outside ``methods`` with its own 405 before
    the endpoint runs. Here the endpoint decides, so unknown paths stay 404
    whatever the method, and extension methods such as PROPFIND are logged
    like any other request.
    """

    def matches(self, scope: Scope) -> Tuple[Match, Scope]:
        match, child_scope = super().matches(scope)
        if match == Match.PARTIAL:
            match = Match.FULL
        return match, child_scope

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)


router = APIRouter(route_class=AnyMethodRoute)


def request_target(request: Request) -> str:
    """
    Request target as sent by the client: undecoded path plus query string.

    A query string makes the target fail FILES_PATH_PATTERN.
    """
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    # Some servers include the query in raw_path, others only in query_string
    target = raw_path.split(b"?", 1)[0]
    query = request.scope.get("query_string", b"")
    if query:
        target += b"?" + query
    return target.decode("latin-1")


@router.api_route("/{path:path}", methods=list(ALLOWED_METHODS), include_in_schema=False)
async def dispatch(
    request: Request,
    repository: StorageRepository,
    config: AppSettings,
) -> Response:
    """
    Validate the request path and delegate to download or upload.

    - Path not of the form /files/<name>: 404, backend never touched
    - Empty or dot-only name: 400
    - GET: stream the object back
    - POST: store the request body
    - Anything else: 405
    """
    path = request_target(request)
    name = extract_object_name(path)

    if name is None:
        logger.info(
            "Path does not match",
            path=path,
            pattern=FILES_PATH_PATTERN,
            status=status.HTTP_404_NOT_FOUND,
        )
        metrics.record_request("dispatch", status.HTTP_404_NOT_FOUND)
        return PlainTextResponse("Not Found", status_code=status.HTTP_404_NOT_FOUND)

    try:
        validate_object_name(name)
    except InvalidObjectNameError as e:
        logger.info("Invalid object name", path=path, status=status.HTTP_400_BAD_REQUEST, reason=e.reason)
        metrics.record_request("dispatch", status.HTTP_400_BAD_REQUEST)
        return PlainTextResponse(str(e), status_code=status.HTTP_400_BAD_REQUEST)

    if request.method == "GET":
        return FileService.download(
            repository, name, path, distinct_not_found=config.DISTINCT_NOT_FOUND
        )

    if request.method == "POST":
        return await FileService.upload(
            repository, name, path, request.stream(), config.MAX_UPLOAD_SIZE
        )

    logger.info(
        "Method not allowed",
        path=path,
        method=request.method,
        status=status.HTTP_405_METHOD_NOT_ALLOWED,
    )
    metrics.record_request("dispatch", status.HTTP_405_METHOD_NOT_ALLOWED)
    return PlainTextResponse(
        "Method Not Allowed",
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        headers={"Allow": ", ".join(ALLOWED_METHODS)},
    )
