"""Utility modules for PlantOps.

- **errors** -- exception hierarchy rooted at PlantOpsError; each class
  carries the HTTP status the API layer maps it to.
- **logging** -- structlog setup with coloured console output in development
  and structured JSON in production.
"""

from plantops.utils.errors import (
    ClientDisconnectedError,
    ConfigurationError,
    DocumentNotFoundError,
    DocumentValidationError,
    EmbeddingError,
    ExtractionError,
    GenerationError,
    InputValidationError,
    PlantOpsError,
    ProviderUnavailableError,
    RateLimitExceededError,
    RetrievalError,
)
from plantops.utils.logging import configure_logging, get_logger

__all__ = [
    "ClientDisconnectedError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "DocumentValidationError",
    "EmbeddingError",
    "ExtractionError",
    "GenerationError",
    "InputValidationError",
    "PlantOpsError",
    "ProviderUnavailableError",
    "RateLimitExceededError",
    "RetrievalError",
    "configure_logging",
    "get_logger",
]
