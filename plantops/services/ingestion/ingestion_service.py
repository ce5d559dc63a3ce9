"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **validate -> extract -> chunk -> embed -> stage -> publish**.

Validation runs synchronously inside the upload request, before any
:class:`Document` exists.  Everything after it runs in a background
``asyncio.Task`` that the service tracks until it finishes, so a client
disconnect never abandons an accepted upload.  Each stage can fail on its
own; the first failure marks the document ``failed``, records the error
and deletes whatever chunks were already staged.  Nothing is retried.

Chunks become visible to retrieval only through
:meth:`IVectorStoreProvider.publish_document`, which runs after every chunk
is stored, so readers see all of a document or none of it.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from plantops.models.document import Document, DocumentStatus, UploadedFile
from plantops.utils.errors import (
    DocumentValidationError,
    EmbeddingError,
    ExtractionError,
    PlantOpsError,
    RetrievalError,
)

if TYPE_CHECKING:
    from plantops.interfaces.document_registry import IDocumentRegistry
    from plantops.interfaces.embedding_provider import IEmbeddingProvider
    from plantops.interfaces.vector_store_provider import IVectorStoreProvider
    from plantops.services.ingestion.chunker import TextChunker
    from plantops.services.ingestion.extractors import TextExtractor

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Validates uploads and runs them through the ingestion pipeline.

    Parameters
    ----------
    extractor:
        Turns an upload into plain text.
    chunker:
        Splits text into embedding-sized chunks.
    embedding_provider:
        Generates one vector per chunk.
    vector_store:
        Stages, publishes and deletes chunks.
    registry:
        Holds the :class:`Document` status records.
    allowed_media_types:
        Upload extension (without dot) mapped to its media type.
    max_file_size:
        Largest accepted payload in bytes.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        registry: IDocumentRegistry,
        allowed_media_types: dict[str, str],
        max_file_size: int,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._registry = registry
        self._allowed = allowed_media_types
        self._max_file_size = max_file_size
        self._tasks: set[asyncio.Task[Document]] = set()

    @property
    def allowed_extensions(self) -> list[str]:
        return sorted(self._allowed)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, upload: UploadedFile) -> str:
        """Check type and size before any processing; return the media type.

        Raises
        ------
        DocumentValidationError
            413 when the payload exceeds the size limit, 400 for an empty
            payload or a disallowed file type.
        """
        if upload.size_bytes > self._max_file_size:
            raise DocumentValidationError(
                message=(
                    f"{upload.filename} is {upload.size_bytes} bytes; "
                    f"the limit is {self._max_file_size}"
                ),
                status_code=413,
            )
        if upload.size_bytes == 0:
            raise DocumentValidationError(message=f"{upload.filename} is empty")

        media_type = self._allowed.get(upload.extension)
        if media_type is None:
            raise DocumentValidationError(
                message=(
                    f"file type '.{upload.extension}' is not allowed; "
                    f"accepted: {', '.join(self.allowed_extensions)}"
                ),
            )
        return media_type

    async def submit(self, upload: UploadedFile) -> Document:
        """Validate *upload*, register it and start ingestion in the background.

        Returns the ``processing`` Document immediately.
        """
        media_type = self.validate(upload)
        document = Document(
            filename=upload.filename,
            media_type=media_type,
            size_bytes=upload.size_bytes,
        )
        await self._registry.save(document)

        task = asyncio.create_task(
            self.ingest(document, upload), name=f"ingest-{document.document_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "document_accepted",
            document_id=document.document_id,
            filename=document.filename,
            media_type=media_type,
            size_bytes=document.size_bytes,
        )
        return document

    async def ingest(self, document: Document, upload: UploadedFile) -> Document:
        """Run every stage for *document* and return its terminal record."""
        log = logger.bind(document_id=document.document_id, filename=document.filename)
        try:
            text = await self._extractor.extract(upload, document.media_type)
            if not text.strip():
                raise ExtractionError(message="no extractable text")

            chunks = self._chunker.chunk(
                text,
                document_id=document.document_id,
                source_title=document.filename,
                media_type=document.media_type,
            )
            if not chunks:
                raise ExtractionError(message="no extractable text")

            embeddings = await self._embedding_provider.embed([c.text for c in chunks])
            if len(embeddings) != len(chunks):
                raise EmbeddingError(
                    message=f"expected {len(chunks)} embeddings, got {len(embeddings)}",
                    provider_name=self._embedding_provider.get_provider_name(),
                )

            await self._vector_store.add_chunks(chunks, embeddings)
            published = await self._vector_store.publish_document(document.document_id)
            if published != len(chunks):
                raise RetrievalError(
                    message=f"published {published} of {len(chunks)} staged chunks",
                    provider_name=self._vector_store.get_provider_name(),
                )
        except asyncio.CancelledError:
            await self._fail(document, "ingestion cancelled", log)
            raise
        except PlantOpsError as exc:
            return await self._fail(document, str(exc), log)
        except Exception as exc:
            log.exception("ingestion_unexpected_error")
            return await self._fail(document, f"unexpected error: {exc}", log)

        completed = document.model_copy(
            update={
                "status": DocumentStatus.COMPLETED,
                "chunk_count": published,
                "completed_at": datetime.now(tz=timezone.utc),
            }
        )
        await self._registry.save(completed)
        log.info("ingestion_completed", chunks=published)
        return completed

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight ingestions; cancel any still running after *timeout*.

        Cancelled ingestions are still recorded as ``failed``.
        """
        if not self._tasks:
            return
        pending = list(self._tasks)
        logger.info("ingestion_draining", in_flight=len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("ingestion_drain_cancelled", cancelled=len(still_running))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fail(
        self, document: Document, reason: str, log: structlog.BoundLogger
    ) -> Document:
        try:
            await self._vector_store.delete_document(document.document_id)
        except PlantOpsError as exc:
            log.warning("staged_chunk_cleanup_failed", error=str(exc))

        failed = document.model_copy(
            update={
                "status": DocumentStatus.FAILED,
                "error": reason,
                "completed_at": datetime.now(tz=timezone.utc),
            }
        )
        await self._registry.save(failed)
        log.warning("ingestion_failed", error=reason)
        return failed
