"""Pydantic v2 data models for PlantOps.

- **chat** -- Turn, TurnRole, ChatMode, DiagnosticContext
- **document** -- UploadedFile, Document, DocumentStatus
- **rag** -- DocumentChunk, RetrievedChunk, CorpusStats
- **troubleshooting** -- TroubleshootingStep and its payload rows
"""

from plantops.models.chat import ChatMode, DiagnosticContext, Turn, TurnRole
from plantops.models.document import Document, DocumentStatus, UploadedFile
from plantops.models.rag import CorpusStats, DocumentChunk, RetrievedChunk, make_chunk_id
from plantops.models.troubleshooting import (
    Measurement,
    StepOption,
    StepType,
    TroubleshootingStep,
)

__all__ = [
    "ChatMode",
    "CorpusStats",
    "DiagnosticContext",
    "Document",
    "DocumentChunk",
    "DocumentStatus",
    "Measurement",
    "RetrievedChunk",
    "StepOption",
    "StepType",
    "TroubleshootingStep",
    "Turn",
    "TurnRole",
    "UploadedFile",
    "make_chunk_id",
]
