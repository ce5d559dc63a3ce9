"""In-memory document registry.

Holds the latest :class:`Document` record per id in a plain dict.  All
access happens on the event loop thread, so no locking is needed.

The registry is bounded: once it holds more than *max_documents* records,
the oldest terminal (completed or failed) records are dropped.  Documents
still processing are never evicted, so their status stays pollable.
"""

from __future__ import annotations

from plantops.interfaces.document_registry import IDocumentRegistry
from plantops.models.document import Document
from plantops.utils.logging import get_logger

_logger = get_logger(__name__)


class MemoryDocumentRegistry(IDocumentRegistry):

    def __init__(self, max_documents: int = 10_000) -> None:
        self._documents: dict[str, Document] = {}
        self._max_documents = max_documents

    async def save(self, document: Document) -> None:
        self._documents[document.document_id] = document
        if len(self._documents) > self._max_documents:
            self._evict()

    async def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def list_all(self) -> list[Document]:
        return sorted(self._documents.values(), key=lambda d: d.uploaded_at, reverse=True)

    def _evict(self) -> None:
        excess = len(self._documents) - self._max_documents
        terminal = sorted(
            (doc for doc in self._documents.values() if doc.is_terminal),
            key=lambda d: d.uploaded_at,
        )
        for document in terminal[:excess]:
            del self._documents[document.document_id]
        if terminal:
            _logger.info("document_registry_evicted", count=min(excess, len(terminal)))
