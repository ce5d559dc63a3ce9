"""PlantOps FastAPI application entry point.

Wires together every provider and service via constructor injection,
stores them on ``app.state`` for the route dependencies, and installs the
middleware stack.  Run with ``python -m plantops`` or
``uvicorn plantops.main:create_app --factory``.
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from plantops import __version__
from plantops.api.health import router as health_router
from plantops.api.middleware import (
    ErrorHandlingMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    http_exception_handler,
    validation_exception_handler,
)
from plantops.api.rate_limit import FixedWindowRateLimiter
from plantops.api.routes import router as api_router
from plantops.config.settings import Settings, load_settings
from plantops.providers.documents import MemoryDocumentRegistry
from plantops.providers.embedding import OllamaEmbeddingProvider
from plantops.providers.llm import OllamaLLMProvider
from plantops.providers.session import MemorySessionStore
from plantops.providers.vector_store import ChromaDBProvider
from plantops.services.ingestion import IngestionService, TextChunker, TextExtractor
from plantops.services.session_coordinator import SessionCoordinator
from plantops.services.troubleshooting_service import TroubleshootingService
from plantops.utils.errors import ConfigurationError
from plantops.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_SERVICE_NAME = "plantops"
# Seconds shutdown waits for in-flight ingestions before cancelling them.
_DRAIN_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(settings: Settings) -> dict[str, Any]:
    """Construct every provider and service for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here opens a network connection; ChromaDB connects on first
    use, so the server starts even while a backing service is down.
    """
    # -- Providers --
    llm = OllamaLLMProvider(settings=settings)
    embedding_provider = OllamaEmbeddingProvider(settings=settings)
    vector_store = ChromaDBProvider(
        embedding_provider=embedding_provider,
        collection_name=settings.chromadb_collection_name,
        host=settings.chromadb_host,
        port=settings.chromadb_port,
    )
    registry = MemoryDocumentRegistry(max_documents=settings.document_registry_max_entries)
    session_store = MemorySessionStore(
        max_sessions=settings.session_max_entries,
        ttl=settings.session_ttl_seconds,
    )

    # -- Services --
    coordinator = SessionCoordinator(
        llm=llm,
        vector_store=vector_store,
        history_window=settings.chat_history_window,
        top_k=settings.rag_top_k,
        retrieval_timeout=settings.retrieval_timeout_seconds,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    troubleshooting_service = TroubleshootingService(
        llm=llm,
        vector_store=vector_store,
        top_k=settings.rag_top_k,
        retrieval_timeout=settings.retrieval_timeout_seconds,
    )
    ingestion_service = IngestionService(
        extractor=TextExtractor(llm_provider=llm),
        chunker=TextChunker(chunk_size=settings.chunk_size, overlap=settings.chunk_overlap),
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        registry=registry,
        allowed_media_types=settings.get_allowed_media_types(),
        max_file_size=settings.max_file_size,
    )

    return {
        "llm_provider": llm,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "document_registry": registry,
        "session_store": session_store,
        "session_coordinator": coordinator,
        "troubleshooting_service": troubleshooting_service,
        "ingestion_service": ingestion_service,
        # Provider clients closed on shutdown.
        "closeables": [llm, embedding_provider],
    }


# ---------------------------------------------------------------------------
# Fatal error hooks
# ---------------------------------------------------------------------------


def _exit_on_loop_error(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    _logger.critical(
        "unhandled_async_error",
        message=context.get("message"),
        error=str(exc) if exc else None,
        error_type=type(exc).__name__ if exc else None,
    )
    os._exit(1)


def _exit_on_uncaught(exc_type: type[BaseException], exc: BaseException, tb: Any) -> None:
    _logger.critical(
        "uncaught_exception",
        error=str(exc),
        error_type=exc_type.__name__,
    )
    os._exit(1)


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Mark the app ready on startup; drain ingestion and close clients on shutdown."""
    if getattr(application.state, "exit_on_loop_error", False):
        asyncio.get_running_loop().set_exception_handler(_exit_on_loop_error)

    application.state.started_at = time.monotonic()
    settings: Settings = application.state.settings
    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        chat_model=settings.ollama_model_chat,
        collection=settings.chromadb_collection_name,
    )

    yield

    await application.state.ingestion_service.drain(timeout=_DRAIN_TIMEOUT)
    for component in getattr(application.state, "closeables", []):
        try:
            await component.close()
        except Exception as exc:
            _logger.warning(
                "component_close_failed",
                component=type(component).__name__,
                error=str(exc),
            )
    application.state.started_at = None
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    components: dict[str, Any] | None = None,
    exit_on_loop_error: bool = False,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    settings:
        Application settings; loaded from the environment when omitted.
    components:
        Pre-built providers and services keyed as in
        :func:`build_components`.  Tests pass fakes here.
    exit_on_loop_error:
        Install an event-loop exception handler that logs and exits the
        process with status 1.
    """
    settings = settings or load_settings()
    components = components if components is not None else build_components(settings)

    application = FastAPI(
        title="PlantOps API",
        version=__version__,
        description=(
            "Troubleshooting assistant for power-plant operators: retrieval-"
            "augmented chat, guided troubleshooting procedures and document "
            "ingestion into the plant knowledge base."
        ),
        lifespan=_lifespan,
    )

    application.state.settings = settings
    application.state.started_at = None
    application.state.exit_on_loop_error = exit_on_loop_error
    for key, value in components.items():
        setattr(application.state, key, value)

    general_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        name="general",
    )
    upload_limiter = FixedWindowRateLimiter(
        max_requests=settings.upload_rate_limit_max_requests,
        window_seconds=settings.upload_rate_limit_window_seconds,
        name="upload",
    )
    application.state.rate_limiters = {"general": general_limiter, "upload": upload_limiter}

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(
        RateLimitMiddleware, general=general_limiter, upload=upload_limiter
    )
    application.add_middleware(
        ErrorHandlingMiddleware, include_stack=not settings.is_production
    )
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)

    # -- Routes --
    application.include_router(health_router)
    application.include_router(api_router)

    @application.get("/", include_in_schema=False)
    async def banner() -> dict[str, str]:
        return {
            "name": _SERVICE_NAME,
            "version": __version__,
            "status": "running",
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }

    return application


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------


def run() -> None:
    """Load settings, configure logging and serve until SIGINT/SIGTERM.

    Exits with status 1 when mandatory configuration is missing.
    """
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        configure_logging()
        _logger.critical("configuration_invalid", error=exc.message)
        sys.exit(1)

    configure_logging(log_level=settings.log_level, json_output=settings.is_production)
    sys.excepthook = _exit_on_uncaught

    application = create_app(settings=settings, exit_on_loop_error=True)
    uvicorn.run(
        application,
        host=settings.app_host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
