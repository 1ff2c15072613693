"""API middleware: CORS, request logging, error handling and request validation.

Starlette runs middleware last-added-first, so with ``main.py`` adding
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware`` a request
flows::

    client -> RequestLogging -> ErrorHandling -> route

and the request log records the status of the structured error response.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ragline.api.schemas import ErrorResponse
from ragline.utils.errors import RaglineError, ValidationError
from ragline.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; every origin is allowed unless *allowed_origins* is given."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=duration_ms,
            )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn :class:`RaglineError` into an :class:`ErrorResponse` with its status code.

    The client sees the error class, its ``code`` and message.  Backend and
    internal errors are logged with their traceback; client errors (4xx)
    are logged as warnings without one.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except RaglineError as exc:
            log_fields = {
                "error_type": type(exc).__name__,
                "code": exc.code,
                "message": exc.message,
                "provider": exc.provider_name,
                "path": str(request.url.path),
            }
            if exc.status_code >= 500:
                _logger.error("application_error", exc_info=True, **log_fields)
            else:
                _logger.warning("request_rejected", **log_fields)

            body = ErrorResponse(
                error=type(exc).__name__,
                code=exc.code,
                detail=exc.message,
            )
            return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic's error list to ``"body.name: message; ..."``."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid request"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed requests with the same envelope as :class:`ValidationError`."""
    detail = _describe_validation_errors(exc)
    _logger.warning(
        "request_rejected",
        error_type="RequestValidationError",
        code=ValidationError.code,
        message=detail,
        path=str(request.url.path),
    )
    body = ErrorResponse(error=ValidationError.__name__, code=ValidationError.code, detail=detail)
    return JSONResponse(status_code=ValidationError.status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
