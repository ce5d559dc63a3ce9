"""Shared pytest fixtures for the PlantOps test suite."""

from __future__ import annotations

import asyncio
import hashlib
import struct
from unittest.mock import AsyncMock, MagicMock

import pytest

from plantops.config.settings import Settings
from plantops.interfaces.embedding_provider import IEmbeddingProvider
from plantops.interfaces.llm_provider import ILLMProvider
from plantops.interfaces.vector_store_provider import IVectorStoreProvider
from plantops.models.rag import CorpusStats, DocumentChunk, RetrievedChunk
from plantops.utils.errors import GenerationError, RetrievalError

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: object) -> Settings:
    """Settings with every mandatory field filled and no .env lookup."""
    values: dict[str, object] = {
        "port": 8080,
        "ollama_host": "localhost",
        "ollama_port": 11434,
        "chromadb_host": "localhost",
        "chromadb_port": 8000,
        "chromadb_collection_name": "plant_docs_test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[arg-type]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Completion provider stub
# ---------------------------------------------------------------------------


class RecordingLLM(ILLMProvider):
    """Completion provider that records every prompt it receives.

    Returns *reply* for every call, or raises *error* when set.
    """

    def __init__(
        self,
        reply: str = "Check the lube oil filter first.",
        error: Exception | None = None,
    ) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, object]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        return "GAUGE 3: 42 bar"

    def supports_vision(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "recording-llm"

    async def list_models(self) -> list[str]:
        return ["llama3.2:3b"]

    async def validate_credentials(self) -> bool:
        return True

    @property
    def last_user_prompt(self) -> str:
        return str(self.calls[-1]["user_prompt"])


@pytest.fixture
def recording_llm() -> RecordingLLM:
    return RecordingLLM()


@pytest.fixture
def failing_llm() -> RecordingLLM:
    return RecordingLLM(error=GenerationError(message="connection refused", provider_name="ollama"))


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """MagicMock ILLMProvider; override ``complete.return_value`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.supports_vision.return_value = False
    mock.validate_credentials = AsyncMock(return_value=True)
    mock.list_models = AsyncMock(return_value=["llama3.2:3b"])
    mock.complete = AsyncMock(return_value="ok")
    mock.vision_extract = AsyncMock(return_value="ok")
    return mock


# ---------------------------------------------------------------------------
# RAG fixtures
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector derived from the SHA-256 of *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # uint32 -> [-0.5, 0.5)
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store honouring the staged/published split.

    ``add_chunks`` stores one chunk per event-loop step so concurrent
    readers can interleave with an in-flight ingestion.  Set
    ``fail_queries``/``fail_publish`` to simulate an unreachable store.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[DocumentChunk, list[float], bool]] = {}
        self._embedding = MockEmbeddingProvider()
        self.fail_queries = False
        self.fail_publish = False
        self.query_delay = 0.0

    async def query(self, query_text: str, top_k: int = 5) -> list[RetrievedChunk]:
        if self.query_delay:
            await asyncio.sleep(self.query_delay)
        if self.fail_queries:
            raise RetrievalError(message="connection refused", provider_name="mock-store")

        query_vec = await self._embedding.embed_single(query_text)
        scored: list[tuple[float, DocumentChunk]] = []
        for chunk, vec, published in self._store.values():
            if not published:
                continue
            dot = sum(a * b for a, b in zip(query_vec, vec, strict=True))
            scored.append((max(0.0, min(1.0, dot)), chunk))

        scored.sort(key=lambda x: (-x[0], x[1].chunk_id))
        return [RetrievedChunk(chunk=c, similarity_score=s) for s, c in scored[:top_k]]

    async def add_chunks(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        for chunk, emb in zip(chunks, embeddings, strict=True):
            self._store[chunk.chunk_id] = (chunk, emb, False)
            await asyncio.sleep(0)
        return len(chunks)

    async def publish_document(self, document_id: str) -> int:
        if self.fail_publish:
            raise RetrievalError(message="publish failed", provider_name="mock-store")
        count = 0
        for cid, (chunk, emb, published) in list(self._store.items()):
            if chunk.document_id == document_id and not published:
                self._store[cid] = (chunk, emb, True)
                count += 1
        return count

    async def delete_document(self, document_id: str) -> int:
        to_delete = [cid for cid, (c, _, _) in self._store.items() if c.document_id == document_id]
        for cid in to_delete:
            del self._store[cid]
        return len(to_delete)

    async def get_stats(self) -> CorpusStats:
        published = [c for c, _, p in self._store.values() if p]
        return CorpusStats(
            collection_name="mock",
            total_chunks=len(published),
            total_documents=len({c.document_id for c in published}),
            staged_chunks=len(self._store) - len(published),
        )

    async def ping(self) -> bool:
        return not self.fail_queries

    def get_provider_name(self) -> str:
        return "mock-store"

    def chunks_for(self, document_id: str) -> list[DocumentChunk]:
        return [c for c, _, _ in self._store.values() if c.document_id == document_id]


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> MockVectorStore:
    return MockVectorStore()
