"""Custom exception hierarchy for ragline.

All application exceptions inherit from :class:`RaglineError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "openai", "chromadb", "sqlite_catalog") caused the failure.

Each class also declares a stable ``code`` and the HTTP ``status_code``
that :class:`~ragline.api.middleware.ErrorHandlingMiddleware` answers with:

    RaglineError             (base, 500)
    +-- ValidationError      (bad input, overlap >= size, bad strategy type; 400)
    +-- NotFoundError        (collection / strategy / document absent; 404)
    +-- ConflictError        (duplicate name, dependents exist, busy document; 409)
    +-- BackendError         (vector store / embedding / LLM call failed; 502)
    |   +-- EmbeddingError
    |   +-- VectorStoreError
    |   +-- LLMError
    +-- ProcessingError      (ingestion step failed; terminal for the document)
    +-- ConfigurationError   (startup / missing config)

Synchronous entry points surface the first three immediately.  Ingestion
failures never propagate to the uploader; they are recorded on the
Document row as ``failed`` plus the message.
"""


class RaglineError(Exception):
    """Base exception for all ragline errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for log
    output, e.g. ``[chromadb] Collection 'kb' not found``.
    """

    code = "internal_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors (surfaced synchronously)
# ---------------------------------------------------------------------------


class ValidationError(RaglineError):
    """Raised when a required field is missing or a parameter is invalid."""

    code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(RaglineError):
    """Raised when a referenced collection, strategy or document is absent."""

    code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConflictError(RaglineError):
    """Raised on a uniqueness violation or when dependents block a mutation."""

    code = "conflict"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource conflict",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Backend errors
# ---------------------------------------------------------------------------


class BackendError(RaglineError):
    """Raised when an external backend is unreachable or rejected the call.

    Cleanup paths (deleting a vector-store collection while deleting its
    Catalog record) catch and log this; everywhere else it propagates.
    """

    code = "backend_error"
    status_code = 502

    def __init__(
        self,
        message: str = "Backend call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(BackendError):
    """Raised when an embedding API call fails."""

    code = "embedding_error"

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(BackendError):
    """Raised when a vector-store operation fails."""

    code = "vector_store_error"

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(BackendError):
    """Raised when an LLM API call fails or returns an unusable response."""

    code = "llm_error"

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion / configuration errors
# ---------------------------------------------------------------------------


class ProcessingError(RaglineError):
    """Raised when a chunking, cleansing or extraction step fails during ingestion."""

    code = "processing_error"
    status_code = 500

    def __init__(
        self,
        message: str = "Document processing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RaglineError):
    """Raised when configuration is invalid or missing at startup."""

    code = "configuration_error"
    status_code = 500

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
