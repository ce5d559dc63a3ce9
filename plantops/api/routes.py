"""FastAPI routes for the PlantOps assistant.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern, so tests can swap any
component by assigning a fake onto ``app.state`` before the request.

Endpoint                      Method  Description
--------------------------------------------------------------------
/api/chat                     POST    One chat turn (RAG + completion)
/api/troubleshooting          POST    Generate troubleshooting steps
/api/documents                POST    Upload a document for ingestion
/api/documents                GET     List documents, newest first
/api/documents/{document_id}  GET     One document's ingestion status
/api/admin/documents          GET     Document table for the admin client
/api/admin/stats              GET     Document and corpus totals
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import Counter
from collections.abc import Awaitable
from typing import Annotated, TypeVar

import structlog
from fastapi import APIRouter, Depends, Request, UploadFile

from plantops.api.schemas import (
    AdminDocument,
    AdminDocumentListResponse,
    AdminStatsResponse,
    ChatRequest,
    ChatResponse,
    DocumentListResponse,
    DocumentUploadResponse,
    ErrorResponse,
    TroubleshootingRequest,
    TroubleshootingResponse,
)
from plantops.config.settings import Settings
from plantops.interfaces.document_registry import IDocumentRegistry
from plantops.interfaces.session_store import ISessionStore
from plantops.interfaces.vector_store_provider import IVectorStoreProvider
from plantops.models.chat import ChatMode, Turn, TurnRole
from plantops.models.document import Document, UploadedFile
from plantops.services.ingestion.ingestion_service import IngestionService
from plantops.services.session_coordinator import SessionCoordinator
from plantops.services.troubleshooting_service import TroubleshootingService
from plantops.utils.errors import (
    ClientDisconnectedError,
    DocumentNotFoundError,
    DocumentValidationError,
    PlantOpsError,
)
from plantops.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api")

# The multipart body is already spooled to a temporary file when the route
# runs; it is copied into memory in 64 KB increments, stopping at the limit.
_UPLOAD_CHUNK_SIZE = 64 * 1024
# Seconds between client-disconnect checks while a provider call runs.
_DISCONNECT_POLL_SECONDS = 0.5

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_coordinator(request: Request) -> SessionCoordinator:
    return request.app.state.session_coordinator


def _get_troubleshooting(request: Request) -> TroubleshootingService:
    return request.app.state.troubleshooting_service


def _get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_registry(request: Request) -> IDocumentRegistry:
    return request.app.state.document_registry


def _get_session_store(request: Request) -> ISessionStore:
    return request.app.state.session_store


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    return request.app.state.vector_store


SettingsDep = Annotated[Settings, Depends(_get_settings)]
CoordinatorDep = Annotated[SessionCoordinator, Depends(_get_coordinator)]
TroubleshootingDep = Annotated[TroubleshootingService, Depends(_get_troubleshooting)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion)]
RegistryDep = Annotated[IDocumentRegistry, Depends(_get_registry)]
SessionStoreDep = Annotated[ISessionStore, Depends(_get_session_store)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]


# ---------------------------------------------------------------------------
# Client disconnects
# ---------------------------------------------------------------------------


async def _run_until_disconnect(
    request: Request,
    work: Awaitable[T],
    event: str,
) -> T:
    """Await *work*, cancelling it if the client goes away first.

    Starlette keeps running an endpoint after its client disconnects, so a
    slow completion would otherwise hold the provider until it times out.

    Raises
    ------
    ClientDisconnectedError
        If the client disconnected; *work* has been cancelled by then.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=_DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                break
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    _logger.info(event, path=str(request.url.path))
    raise ClientDisconnectedError()


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Send one operator message and receive the assistant reply",
)
async def chat(
    body: ChatRequest,
    request: Request,
    coordinator: CoordinatorDep,
    session_store: SessionStoreDep,
) -> ChatResponse:
    """Answer *body.message* using retrieved documentation and recent history.

    When ``session_id`` is given and ``history`` is empty, the stored turns
    of that session are used instead.  The user and assistant turns are
    appended to the session only after a successful reply.  The completion
    is cancelled if the client disconnects while it runs.
    """
    history = list(body.history)
    if body.session_id and not history:
        history = await session_store.get_turns(body.session_id)

    reply = await _run_until_disconnect(
        request,
        coordinator.handle_turn(
            history=history,
            message=body.message,
            diagnostic_context=body.context,
            mode=body.mode or ChatMode.GENERAL,
        ),
        "chat_client_disconnected",
    )

    if body.session_id:
        user_turn = Turn(role=TurnRole.USER, content=body.message.strip())
        await session_store.append_turns(body.session_id, [user_turn, reply])

    return ChatResponse(
        response=reply.content,
        context=list(reply.references),
        turn=reply,
        session_id=body.session_id,
    )


# ---------------------------------------------------------------------------
# Troubleshooting
# ---------------------------------------------------------------------------


@router.post(
    "/troubleshooting",
    response_model=TroubleshootingResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Generate a guided troubleshooting procedure",
)
async def troubleshooting(
    body: TroubleshootingRequest,
    request: Request,
    service: TroubleshootingDep,
) -> TroubleshootingResponse:
    steps = await _run_until_disconnect(
        request,
        service.generate_steps(body),
        "troubleshooting_client_disconnected",
    )
    return TroubleshootingResponse(steps=steps)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def _oversize(filename: str, limit: int) -> DocumentValidationError:
    _logger.warning("upload_rejected_oversize", filename=filename, limit=limit)
    return DocumentValidationError(
        message=f"{filename} exceeds the upload limit of {limit} bytes",
        status_code=413,
    )


@router.post(
    "/documents",
    status_code=202,
    response_model=DocumentUploadResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
    summary="Upload a document for background ingestion",
)
async def upload_document(
    file: UploadFile,
    ingestion: IngestionDep,
    settings: SettingsDep,
) -> DocumentUploadResponse:
    """Accept a document and start ingestion; returns before processing ends."""
    filename = file.filename or ""
    if not filename:
        raise DocumentValidationError(message="a filename is required")

    if file.size is not None and file.size > settings.max_file_size:
        raise _oversize(filename, settings.max_file_size)

    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > settings.max_file_size:
            raise _oversize(filename, settings.max_file_size)
        chunks.append(chunk)

    upload = UploadedFile.from_bytes(
        filename=filename,
        data=b"".join(chunks),
        media_type=file.content_type or "",
    )
    del chunks

    document = await ingestion.submit(upload)
    return DocumentUploadResponse(document_id=document.document_id, status=document.status)


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List uploaded documents, newest first",
)
async def list_documents(registry: RegistryDep) -> DocumentListResponse:
    documents = await registry.list_all()
    return DocumentListResponse(documents=documents, total=len(documents))


@router.get(
    "/documents/{document_id}",
    response_model=Document,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document's ingestion status",
)
async def get_document(document_id: str, registry: RegistryDep) -> Document:
    document = await registry.get(document_id)
    if document is None:
        raise DocumentNotFoundError(message=f"document {document_id} not found")
    return document


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get(
    "/admin/documents",
    response_model=AdminDocumentListResponse,
    summary="Document table for the admin dashboard, newest first",
)
async def admin_documents(registry: RegistryDep) -> AdminDocumentListResponse:
    documents = await registry.list_all()
    return AdminDocumentListResponse(
        documents=[AdminDocument.from_document(doc) for doc in documents]
    )


@router.get(
    "/admin/stats",
    response_model=AdminStatsResponse,
    summary="Document and corpus totals for the admin dashboard",
)
async def admin_stats(
    registry: RegistryDep,
    ingestion: IngestionDep,
    vector_store: VectorStoreDep,
) -> AdminStatsResponse:
    """Return document counts by status plus corpus totals.

    ``corpus`` is omitted when the vector store cannot be reached.
    """
    documents = await registry.list_all()
    by_status = Counter(doc.status.value for doc in documents)

    corpus = None
    try:
        corpus = await vector_store.get_stats()
    except PlantOpsError as exc:
        _logger.warning("admin_stats_corpus_unavailable", error=str(exc))

    return AdminStatsResponse(
        total_documents=len(documents),
        documents_by_status=dict(by_status),
        in_flight_ingestions=ingestion.in_flight,
        corpus=corpus,
    )
