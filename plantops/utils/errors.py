"""Exception hierarchy for PlantOps.

All application exceptions inherit from :class:`PlantOpsError`, which
carries an optional ``provider_name`` so the error middleware and the logs
can name the backing service ("ollama", "chromadb", ...) that failed.

    PlantOpsError  (base)
    +-- InputValidationError      (bad request content, client fault)
    |   +-- DocumentValidationError  (disallowed type, oversize or empty upload)
    +-- DocumentNotFoundError     (unknown document id)
    +-- RateLimitExceededError    (client exceeded its request budget)
    +-- GenerationError           (completion provider failed)
    +-- RetrievalError            (similarity search failed)
    +-- EmbeddingError            (embedding provider failed)
    +-- ExtractionError           (text extraction from an upload failed)
    +-- ProviderUnavailableError  (backing service unreachable)
    +-- ConfigurationError        (startup / missing config)

Each class declares the HTTP ``status_code`` it maps to so a single
top-level handler can translate any of them into a response.
"""


class PlantOpsError(Exception):
    """Base exception for all PlantOps errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[ollama] generation failed``.
    """

    status_code: int = 500

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
# Client-fault errors
# ---------------------------------------------------------------------------

class InputValidationError(PlantOpsError):
    """Raised when request content is well-formed but semantically invalid."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentValidationError(InputValidationError):
    """Raised when an upload is rejected before any processing begins.

    ``status_code`` is 413 for oversized payloads and 400 otherwise.
    """

    def __init__(
        self,
        message: str = "Invalid document upload",
        provider_name: str | None = None,
        status_code: int = 400,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status_code = status_code


class DocumentNotFoundError(PlantOpsError):
    """Raised when a document id is not known to the registry."""

    status_code = 404

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ClientDisconnectedError(PlantOpsError):
    """Raised when the client goes away before its request has been answered.

    The in-flight provider call is cancelled; 499 is only ever seen in logs.
    """

    status_code = 499

    def __init__(
        self,
        message: str = "client closed the request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitExceededError(PlantOpsError):
    """Raised when a client exceeds its request budget for the current window.

    ``retry_after`` is the whole number of seconds until the window resets.
    """

    status_code = 429

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: int = 1,
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retry_after = max(1, int(retry_after))

    @property
    def retry_after(self) -> int:
        return self._retry_after


# ---------------------------------------------------------------------------
# Upstream provider errors
# ---------------------------------------------------------------------------

class GenerationError(PlantOpsError):
    """Raised when the completion provider fails or returns nothing usable."""

    status_code = 502

    def __init__(
        self,
        message: str = "generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RetrievalError(PlantOpsError):
    """Raised when a similarity query against the vector store fails."""

    status_code = 502

    def __init__(
        self,
        message: str = "retrieval failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(PlantOpsError):
    """Raised when the embedding provider fails."""

    status_code = 502

    def __init__(
        self,
        message: str = "embedding failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(PlantOpsError):
    """Raised when text cannot be extracted from an uploaded document."""

    status_code = 502

    def __init__(
        self,
        message: str = "text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(PlantOpsError):
    """Raised when an external service or provider is unreachable."""

    status_code = 503

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Startup errors
# ---------------------------------------------------------------------------

class ConfigurationError(PlantOpsError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
