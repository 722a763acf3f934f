"""Map business-rule errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from supportdesk.domain.errors import SupportDeskError

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "not-found": 404,
    "forbidden": 403,
    "invalid-state": 409,
    "capacity-exceeded": 409,
    "session-ended": 409,
    "validation": 422,
    "upstream-unavailable": 503,
    "unauthorized": 401,
    "rate-limited": 429,
}


async def support_desk_error_handler(request: Request, exc: SupportDeskError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 400)
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SupportDeskError, support_desk_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
