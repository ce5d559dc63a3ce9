"""Retrieval models: chunks stored in the vector store and query results.

Pipeline overview:

    1. INGESTION: an uploaded manual or report is split into text chunks.
    2. EMBEDDING: each chunk becomes a vector via the embedding provider.
    3. STORAGE: chunks and vectors are staged in ChromaDB, then published
       together once the whole document is stored.
    4. RETRIEVAL: a chat turn searches published chunks for context.
    5. GENERATION: retrieved chunk text is written into the completion prompt.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


def make_chunk_id(document_id: str, sequence_index: int) -> str:
    """Deterministic chunk id so re-staging a document overwrites, never duplicates."""
    return f"{document_id}-{sequence_index}"


# ---------------------------------------------------------------------------
# DocumentChunk: the unit of retrieval.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A chunk of text from an ingested document."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier for this chunk.")
    document_id: str = Field(description="Identifier of the parent document.")
    text: str = Field(description="The chunk's textual content.")
    sequence_index: int = Field(ge=0, description="Position of the chunk within its document.")
    token_count: int = Field(default=0, ge=0, description="Approximate token count.")
    source_title: str = Field(default="", description="Human-readable source name (filename).")
    media_type: str = Field(default="", description="Media type of the parent document.")
    page_number: str | None = Field(
        default=None, description="Page or section reference within the source."
    )


# ---------------------------------------------------------------------------
# RetrievedChunk: a search result from the vector store.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A document chunk returned from a vector-store query with its score."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk = Field(description="The retrieved document chunk.")
    similarity_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Cosine similarity between the query and this chunk.",
    )

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def source_document_id(self) -> str:
        return self.chunk.document_id


class CorpusStats(BaseModel):
    """Aggregate statistics for the published corpus."""

    model_config = ConfigDict(frozen=True)

    collection_name: str = Field(default="", description="Backing collection name.")
    total_chunks: int = Field(default=0, ge=0, description="Published chunks in the store.")
    total_documents: int = Field(
        default=0, ge=0, description="Distinct documents with published chunks."
    )
    staged_chunks: int = Field(
        default=0, ge=0, description="Chunks written but not yet published."
    )
