"""Abstract base class for the document status registry.

The registry holds one :class:`~plantops.models.document.Document` record
per upload.  Only the ingestion service writes to it; the API reads from it
to report processing status.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from plantops.models.document import Document


# Concrete implementation: MemoryDocumentRegistry (plantops/providers/documents/)
class IDocumentRegistry(ABC):

    @abstractmethod
    async def save(self, document: Document) -> None:
        """Insert or replace the record for ``document.document_id``."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the record for *document_id*, or ``None`` if unknown."""

    @abstractmethod
    async def list_all(self) -> list[Document]:
        """Return every record, newest upload first."""
