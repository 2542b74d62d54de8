"""
Helpers for request body streams.
"""
from typing import AsyncIterator

import structlog
from starlette.requests import ClientDisconnect

logger = structlog.get_logger()


async def limit_stream(source: AsyncIterator[bytes], limit: int) -> AsyncIterator[bytes]:
    """
    Yield at most limit bytes from source.

    Content past the limit is not read; the caller is responsible for
    draining source afterwards.
    """
    remaining = limit
    if remaining <= 0:
        return

    async for chunk in source:
        if not chunk:
            continue
        if len(chunk) >= remaining:
            yield chunk[:remaining]
            return
        remaining -= len(chunk)
        yield chunk


async def drain(source: AsyncIterator[bytes]) -> int:
    """
    Consume and discard whatever is left in source.

    Returns:
        Number of bytes discarded
    """
    discarded = 0
    try:
        async for chunk in source:
            discarded += len(chunk)
    except ClientDisconnect:
        logger.debug("Client disconnected while draining request body")
    return discarded
