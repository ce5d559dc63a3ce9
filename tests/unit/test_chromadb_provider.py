"""Unit tests for ChromaDBProvider against an in-process chromadb client.

Each test uses its own collection name because ``EphemeralClient``
instances share state within a process.
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import chromadb
import pytest

from plantops.models.rag import DocumentChunk
from plantops.providers.vector_store.chromadb_provider import ChromaDBProvider
from plantops.utils.errors import EmbeddingError, RetrievalError
from tests.conftest import MockEmbeddingProvider


def _chunks(document_id: str, texts: list[str]) -> list[DocumentChunk]:
    return [
        DocumentChunk(
            chunk_id=f"{document_id}-{i}",
            document_id=document_id,
            text=text,
            sequence_index=i,
            token_count=len(text) // 4,
            source_title=f"{document_id}.pdf",
            media_type="application/pdf",
        )
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def embedding() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def provider(embedding: MockEmbeddingProvider) -> ChromaDBProvider:
    return ChromaDBProvider(
        embedding_provider=embedding,
        collection_name=f"test_{uuid.uuid4().hex[:12]}",
        client=chromadb.EphemeralClient(),
    )


async def _stage(
    provider: ChromaDBProvider, embedding: MockEmbeddingProvider, chunks: list[DocumentChunk]
) -> None:
    await provider.add_chunks(chunks, await embedding.embed([c.text for c in chunks]))


class TestStagingAndPublishing:
    @pytest.mark.asyncio
    async def test_staged_chunks_are_invisible_to_queries(
        self, provider: ChromaDBProvider, embedding: MockEmbeddingProvider
    ) -> None:
        chunks = _chunks("doc1", ["Lube oil filter replacement procedure."])
        await _stage(provider, embedding, chunks)

        assert await provider.query(chunks[0].text, top_k=5) == []
        stats = await provider.get_stats()
        assert stats.total_chunks == 0
        assert stats.staged_chunks == 1

    @pytest.mark.asyncio
    async def test_publish_makes_whole_document_visible(
        self, provider: ChromaDBProvider, embedding: MockEmbeddingProvider
    ) -> None:
        chunks = _chunks("doc1", ["Coolant pump start-up.", "Coolant pump shutdown."])
        await _stage(provider, embedding, chunks)

        assert await provider.publish_document("doc1") == 2

        results = await provider.query(chunks[1].text, top_k=5)
        assert results[0].chunk_id == "doc1-1"
        assert results[0].similarity_score == pytest.approx(1.0, abs=1e-4)
        assert results[0].chunk.source_title == "doc1.pdf"
        assert {r.chunk_id for r in results} == {"doc1-0", "doc1-1"}

        stats = await provider.get_stats()
        assert stats.total_chunks == 2
        assert stats.total_documents == 1
        assert stats.staged_chunks == 0

    @pytest.mark.asyncio
    async def test_publish_only_touches_the_named_document(
        self, provider: ChromaDBProvider, embedding: MockEmbeddingProvider
    ) -> None:
        await _stage(provider, embedding, _chunks("doc1", ["Alarm list A."]))
        await _stage(provider, embedding, _chunks("doc2", ["Alarm list B."]))

        await provider.publish_document("doc1")

        results = await provider.query("Alarm list B.", top_k=5)
        assert [r.source_document_id for r in results] == ["doc1"]

    @pytest.mark.asyncio
    async def test_delete_document_removes_staged_and_published(
        self, provider: ChromaDBProvider, embedding: MockEmbeddingProvider
    ) -> None:
        await _stage(provider, embedding, _chunks("doc1", ["One.", "Two.", "Three."]))
        await provider.publish_document("doc1")

        assert await provider.delete_document("doc1") == 3
        assert await provider.query("One.", top_k=5) == []

    @pytest.mark.asyncio
    async def test_results_ordered_by_descending_score(
        self, provider: ChromaDBProvider, embedding: MockEmbeddingProvider
    ) -> None:
        texts = [f"Procedure step {i}." for i in range(6)]
        await _stage(provider, embedding, _chunks("doc1", texts))
        await provider.publish_document("doc1")

        results = await provider.query(texts[3], top_k=4)

        assert len(results) == 4
        scores = [r.similarity_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert results[0].chunk_id == "doc1-3"

    @pytest.mark.asyncio
    async def test_repeated_queries_return_identical_results(
        self, provider: ChromaDBProvider, embedding: MockEmbeddingProvider
    ) -> None:
        await _stage(provider, embedding, _chunks("doc1", ["A.", "B.", "C."]))
        await provider.publish_document("doc1")

        first = await provider.query("B.", top_k=3)
        second = await provider.query("B.", top_k=3)
        assert [r.chunk_id for r in first] == [r.chunk_id for r in second]


class TestValidationAndErrors:
    @pytest.mark.asyncio
    async def test_add_chunks_length_mismatch(self, provider: ChromaDBProvider) -> None:
        with pytest.raises(ValueError):
            await provider.add_chunks(_chunks("doc1", ["x"]), [])

    @pytest.mark.asyncio
    async def test_zero_top_k_returns_nothing(self, provider: ChromaDBProvider) -> None:
        assert await provider.query("anything", top_k=0) == []

    @pytest.mark.asyncio
    async def test_client_failure_wrapped_in_retrieval_error(
        self, embedding: MockEmbeddingProvider
    ) -> None:
        client = MagicMock()
        client.get_or_create_collection.side_effect = ConnectionError("refused")
        provider = ChromaDBProvider(
            embedding_provider=embedding, collection_name="unreachable", client=client
        )

        with pytest.raises(RetrievalError) as exc_info:
            await provider.query("pump", top_k=3)
        assert exc_info.value.provider_name == "chromadb"
        assert await provider.ping() is False

    @pytest.mark.asyncio
    async def test_embedding_failure_wrapped_in_retrieval_error(self) -> None:
        embedding = MagicMock(spec=MockEmbeddingProvider)
        embedding.embed_single = AsyncMock(side_effect=EmbeddingError(message="down"))
        provider = ChromaDBProvider(
            embedding_provider=embedding,
            collection_name=f"test_{uuid.uuid4().hex[:12]}",
            client=chromadb.EphemeralClient(),
        )

        with pytest.raises(RetrievalError):
            await provider.query("pump", top_k=3)

    @pytest.mark.asyncio
    async def test_ping_ok(self, provider: ChromaDBProvider) -> None:
        assert await provider.ping() is True


class TestMetadataConversion:
    def test_round_trip_keeps_fields(self) -> None:
        chunk = _chunks("doc7", ["Bearing temperature limits."])[0].model_copy(
            update={"page_number": "12"}
        )
        meta = ChromaDBProvider._chunk_to_metadata(chunk)
        assert meta["published"] is False

        restored = ChromaDBProvider._metadata_to_chunk(chunk.chunk_id, meta, chunk.text)
        assert restored == chunk
