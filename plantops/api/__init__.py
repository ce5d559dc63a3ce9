"""PlantOps API layer: routes, health probes, schemas and middleware."""

from plantops.api.health import router as health_router
from plantops.api.middleware import (
    ErrorHandlingMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from plantops.api.rate_limit import FixedWindowRateLimiter
from plantops.api.routes import router
from plantops.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    TroubleshootingRequest,
    TroubleshootingResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "FixedWindowRateLimiter",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "health_router",
    "router",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "HealthResponse",
    "TroubleshootingRequest",
    "TroubleshootingResponse",
]
