"""Health and probe endpoints.

``/api/health`` pings every backing provider and answers 503 when any of
them is down.  ``/ready`` is the orchestrator readiness probe and ``/live``
only proves the event loop is serving requests.  None of these routes are
rate limited.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from plantops import __version__
from plantops.api.schemas import DetailedHealthResponse, HealthResponse, ProbeResponse
from plantops.interfaces.llm_provider import ILLMProvider
from plantops.interfaces.vector_store_provider import IVectorStoreProvider
from plantops.utils.errors import PlantOpsError
from plantops.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])


def _uptime(request: Request) -> float:
    started = getattr(request.app.state, "started_at", None)
    return round(time.monotonic() - started, 3) if started is not None else 0.0


async def _check_services(request: Request) -> dict[str, str]:
    """Ping each provider concurrently; ``"up"`` or ``"down"`` per service."""
    llm: ILLMProvider = request.app.state.llm_provider
    vector_store: IVectorStoreProvider = request.app.state.vector_store

    llm_ok, store_ok = await asyncio.gather(
        llm.validate_credentials(),
        vector_store.ping(),
        return_exceptions=True,
    )
    services = {
        llm.get_provider_name(): "up" if llm_ok is True else "down",
        vector_store.get_provider_name(): "up" if store_ok is True else "down",
    }
    if "down" in services.values():
        _logger.warning("health_check_degraded", services=services)
    return services


def _status_code(services: dict[str, str]) -> int:
    return 200 if all(v == "up" for v in services.values()) else 503


@router.get("", response_model=HealthResponse, summary="Provider health check")
async def health(request: Request) -> JSONResponse:
    services = await _check_services(request)
    status_code = _status_code(services)
    body = HealthResponse(
        status="healthy" if status_code == 200 else "unhealthy",
        timestamp=datetime.now(tz=timezone.utc),
        uptime_seconds=_uptime(request),
        services=services,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get(
    "/detailed",
    response_model=DetailedHealthResponse,
    summary="Health check with models, corpus stats and upload limits",
)
async def health_detailed(request: Request) -> JSONResponse:
    services = await _check_services(request)
    status_code = _status_code(services)
    settings = request.app.state.settings

    models: list[str] = []
    try:
        models = await request.app.state.llm_provider.list_models()
    except PlantOpsError as exc:
        _logger.warning("health_models_unavailable", error=str(exc))

    corpus = None
    try:
        corpus = await request.app.state.vector_store.get_stats()
    except PlantOpsError as exc:
        _logger.warning("health_corpus_unavailable", error=str(exc))

    body = DetailedHealthResponse(
        status="healthy" if status_code == 200 else "unhealthy",
        timestamp=datetime.now(tz=timezone.utc),
        uptime_seconds=_uptime(request),
        services=services,
        version=__version__,
        environment=settings.app_env,
        models=models,
        corpus=corpus,
        supported_file_types=sorted(settings.get_allowed_media_types()),
        max_file_size=settings.max_file_size,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/ready", response_model=ProbeResponse, summary="Readiness probe")
async def ready(request: Request) -> JSONResponse:
    """503 until startup has finished or while any provider is down."""
    if getattr(request.app.state, "started_at", None) is None:
        status_code = 503
    else:
        status_code = _status_code(await _check_services(request))
    body = ProbeResponse(
        status="ready" if status_code == 200 else "not_ready",
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/live", response_model=ProbeResponse, summary="Liveness probe")
async def live(request: Request) -> ProbeResponse:
    return ProbeResponse(
        status="alive",
        timestamp=datetime.now(tz=timezone.utc),
        uptime_seconds=_uptime(request),
    )
