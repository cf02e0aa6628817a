"""Map domain error kinds onto HTTP responses.

NotFound -> 404, Conflict -> 409, InvalidInput -> 400 (422 for body
validation), anything else -> 500 with no internal detail.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend.chatbot.errors import (
    ConflictError,
    DomainError,
    InvalidInputError,
    NotFoundError,
    UnprocessableError,
)

logger = logging.getLogger(__name__)


def status_for(exc: DomainError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, UnprocessableError):
        return status.HTTP_422_UNPROCESSABLE_CONTENT
    if isinstance(exc, InvalidInputError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    code = status_for(exc)
    logger.info(
        f"Request failed: {exc.detail}",
        extra={
            "structured": {
                "path": request.url.path,
                "status_code": code,
                "error": type(exc).__name__,
            }
        },
    )
    return JSONResponse(status_code=code, content={"detail": exc.detail})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        exc_info=exc,
        extra={"structured": {"path": request.url.path, "error": type(exc).__name__}},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
