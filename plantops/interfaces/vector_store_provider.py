"""Abstract base class for vector-store providers.

Writes follow a staging-then-publish pattern.  :meth:`add_chunks` stores a
document's chunks in a hidden, staged state; :meth:`publish_document` makes
all of them visible to :meth:`query` at once; :meth:`delete_document`
discards them.  Readers therefore see either none or all of a document's
chunks, never a partial set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from plantops.models.rag import CorpusStats, DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (plantops/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the retrieval store shared by chat and ingestion."""

    @abstractmethod
    async def query(self, query_text: str, top_k: int = 5) -> list[RetrievedChunk]:
        """Perform a semantic search over published chunks.

        Parameters
        ----------
        query_text:
            The natural-language query to embed and search for.
        top_k:
            Maximum number of results to return; fewer are returned when the
            published corpus is smaller.

        Returns
        -------
        list[RetrievedChunk]
            Results ordered by similarity score, highest first.  Identical
            inputs yield identical results up to float tolerance.

        Raises
        ------
        plantops.utils.errors.RetrievalError
            If the vector store query fails.
        """

    @abstractmethod
    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Stage pre-embedded chunks.  Staged chunks are invisible to :meth:`query`.

        Returns
        -------
        int
            The number of chunks staged.

        Raises
        ------
        ValueError
            If ``len(chunks) != len(embeddings)``.
        plantops.utils.errors.RetrievalError
            If the store operation fails.
        """

    @abstractmethod
    async def publish_document(self, document_id: str) -> int:
        """Make every staged chunk of *document_id* visible in one update.

        Returns
        -------
        int
            The number of chunks published.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> int:
        """Delete all chunks (staged or published) of *document_id*.

        Returns
        -------
        int
            The number of chunks deleted.
        """

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return aggregate statistics about the corpus."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the backing store responds."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""
