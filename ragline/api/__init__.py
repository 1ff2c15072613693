"""ragline HTTP API: routes, schemas and middleware."""

from ragline.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragline.api.routes import router
from ragline.api.schemas import ErrorResponse, HealthResponse, SearchRequest, SearchResponse

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "SearchRequest",
    "SearchResponse",
]
