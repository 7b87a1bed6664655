"""Uniform error responses for every guard and handler.

Any failure that escapes a dependency or route is turned into
``{"error": <message>}``. The status code comes from the failure's ``code``
when it is a usable HTTP status; driver-level codes above 500 (e.g. database
error numbers) become 400 and failures without a code become 500. Only
server-side failures are logged.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bridge_guard.core.errors import (
    HTTP_BAD_REQUEST,
    HTTP_INTERNAL_SERVER_ERROR,
    ServiceError,
)

logger = logging.getLogger(__name__)


def resolve_status_code(exc: BaseException) -> int:
    """Map a failure to the status code sent to the client."""
    if isinstance(exc, RequestValidationError):
        return HTTP_BAD_REQUEST
    if isinstance(exc, StarletteHTTPException):
        code: object = exc.status_code
    else:
        code = getattr(exc, "code", None)

    if code is None or code == "":
        return HTTP_INTERNAL_SERVER_ERROR
    try:
        numeric = int(code)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return HTTP_BAD_REQUEST
    if numeric > HTTP_INTERNAL_SERVER_ERROR:
        return HTTP_BAD_REQUEST
    if numeric < HTTP_BAD_REQUEST:
        return HTTP_INTERNAL_SERVER_ERROR
    return numeric


def error_message(exc: BaseException) -> str:
    if isinstance(exc, StarletteHTTPException):
        return str(exc.detail)
    if isinstance(exc, ServiceError):
        return exc.message
    return str(exc)


class ErrorResponder:
    """Exception handler shared by all failure types."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def __call__(self, request: Request, exc: Exception) -> JSONResponse:
        status_code = resolve_status_code(exc)
        message = error_message(exc)

        if status_code >= HTTP_INTERNAL_SERVER_ERROR:
            self._log.error("request error: %s", message, exc_info=exc)

        headers = getattr(exc, "headers", None) or None
        return JSONResponse(
            status_code=status_code,
            content={"error": message},
            headers=headers,
        )


def install_error_handlers(app: FastAPI, log: logging.Logger | None = None) -> ErrorResponder:
    """Register the error responder for every failure type on `app`."""
    responder = ErrorResponder(log)
    app.add_exception_handler(ServiceError, responder)
    app.add_exception_handler(StarletteHTTPException, responder)
    app.add_exception_handler(RequestValidationError, responder)
    app.add_exception_handler(Exception, responder)
    return responder
