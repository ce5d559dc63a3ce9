"""Pydantic request/response schemas for the PlantOps API.

Request schemas end with ``Request``, response schemas with ``Response``.
FastAPI validates incoming JSON against them (422 on shape errors) and uses
them to serialize responses and generate the OpenAPI docs.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from plantops.models.chat import ChatMode, DiagnosticContext, Turn
from plantops.models.document import Document, DocumentStatus
from plantops.models.rag import CorpusStats
from plantops.models.troubleshooting import TroubleshootingStep


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """One operator message plus the trailing conversation."""

    message: str = Field(..., max_length=8000)
    mode: ChatMode | None = Field(
        default=None,
        description="Analysis mode; null or omitted means general.",
    )
    context: DiagnosticContext | None = None
    history: list[Turn] = Field(default_factory=list)
    session_id: str | None = Field(
        default=None,
        max_length=128,
        description="When set and history is empty, prior turns are loaded from the session store.",
    )


class ChatResponse(BaseModel):
    response: str = Field(description="Assistant reply text.")
    context: list[str] = Field(
        default_factory=list,
        description="Ids of the document chunks used to produce the reply.",
    )
    turn: Turn
    session_id: str | None = None


# ---------------------------------------------------------------------------
# Troubleshooting
# ---------------------------------------------------------------------------


class TroubleshootingRequest(DiagnosticContext):
    """``{engine, alarm, description}`` for the troubleshooting wizard."""


class TroubleshootingResponse(BaseModel):
    steps: list[TroubleshootingStep]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentUploadResponse(BaseModel):
    document_id: str
    status: DocumentStatus


class DocumentListResponse(BaseModel):
    documents: list[Document]
    total: int


class AdminDocument(BaseModel):
    """One row of the admin document table, in the admin client's field names."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: str
    size: int
    status: DocumentStatus
    upload_date: datetime = Field(alias="uploadDate")
    embeddings: int = Field(description="Chunks published for retrieval.")

    @classmethod
    def from_document(cls, document: Document) -> AdminDocument:
        return cls(
            id=document.document_id,
            name=document.filename,
            type=PurePath(document.filename).suffix.lower().lstrip("."),
            size=document.size_bytes,
            status=document.status,
            upload_date=document.uploaded_at,
            embeddings=document.chunk_count,
        )


class AdminDocumentListResponse(BaseModel):
    documents: list[AdminDocument]


class AdminStatsResponse(BaseModel):
    """Totals for the admin dashboard."""

    total_documents: int
    documents_by_status: dict[str, int]
    in_flight_ingestions: int
    corpus: CorpusStats | None = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    timestamp: datetime
    uptime_seconds: float
    services: dict[str, str]


class DetailedHealthResponse(HealthResponse):
    version: str
    environment: str
    models: list[str] = Field(default_factory=list)
    corpus: CorpusStats | None = None
    supported_file_types: list[str] = Field(default_factory=list)
    max_file_size: int


class ProbeResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: float | None = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    status_code: int
    timestamp: datetime
    retry_after: int | None = None
    stack: list[str] | None = None

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
