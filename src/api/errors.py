"""Shared error responses for the API."""

from __future__ import annotations

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def elapsed_ms(started: float) -> int:
    """Milliseconds since *started* (a ``time.monotonic()`` reading)."""
    return int((time.monotonic() - started) * 1000)


def failure_response(error: str, started: float) -> JSONResponse:
    """500 body for scanner/worker runs that failed as a whole."""
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": error, "durationMs": elapsed_ms(started)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Details stay in the log; clients get a generic message.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
