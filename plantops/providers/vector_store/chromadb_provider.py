"""ChromaDB vector store provider.

Wraps a ``chromadb`` client to implement :class:`IVectorStoreProvider` with
cosine similarity.  Every chunk carries a boolean ``published`` metadata
flag: :meth:`add_chunks` writes it as ``False``, :meth:`publish_document`
flips a whole document to ``True`` in a single update, and :meth:`query`
only matches published chunks.

The chromadb client is synchronous, so each call runs in a worker thread
via ``asyncio.to_thread`` to keep the event loop free while the ChromaDB
server answers.
"""

from __future__ import annotations

import asyncio
from typing import Any

import chromadb
import structlog

from plantops.interfaces.embedding_provider import IEmbeddingProvider
from plantops.interfaces.vector_store_provider import IVectorStoreProvider
from plantops.models.rag import CorpusStats, DocumentChunk, RetrievedChunk
from plantops.utils.errors import PlantOpsError, RetrievalError

logger = structlog.get_logger(logger_name=__name__)

_PUBLISHED = "published"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default ONNX model.

    Embeddings are always computed by the injected embedding provider.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("embeddings are supplied by the embedding provider")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by a ChromaDB server.

    Parameters
    ----------
    embedding_provider:
        Embeds query text before searching.
    collection_name:
        Collection to read and write (``CHROMADB_COLLECTION_NAME``).
    host, port:
        ChromaDB server address; ignored when *client* is given.
    client:
        Pre-built chromadb client.  Tests pass ``chromadb.EphemeralClient()``.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        collection_name: str,
        host: str = "localhost",
        port: int = 8000,
        client: Any | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._collection_name = collection_name
        self._host = host
        self._port = port
        self._client = client
        self._collection: Any | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def _connect_sync(self) -> Any:
        if self._client is None:
            self._client = chromadb.HttpClient(
                host=self._host,
                port=self._port,
                settings=chromadb.config.Settings(anonymized_telemetry=False),
            )
        try:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    async def _get_collection(self) -> Any:
        """Open the collection on first use so startup survives a ChromaDB outage."""
        if self._collection is not None:
            return self._collection
        async with self._lock:
            if self._collection is None:
                self._collection = await asyncio.to_thread(self._connect_sync)
                logger.info(
                    "chromadb_collection_opened",
                    collection=self._collection_name,
                )
        return self._collection

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def query(self, query_text: str, top_k: int = 5) -> list[RetrievedChunk]:
        """Semantic search over published chunks, highest similarity first."""
        if top_k <= 0:
            return []
        try:
            query_embedding = await self._embedding_provider.embed_single(query_text)
            collection = await self._get_collection()
            results = await asyncio.to_thread(
                collection.query,
                query_embeddings=[query_embedding],
                n_results=top_k,
                where={_PUBLISHED: True},
                include=["documents", "metadatas", "distances"],
            )
        except PlantOpsError as exc:
            raise RetrievalError(
                message=f"query embedding failed: {exc.message}",
                provider_name=self.get_provider_name(),
            ) from exc
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results.get("ids") or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]

        retrieved: list[RetrievedChunk] = []
        for chunk_id, doc_text, meta, distance in zip(
            ids, documents, metadatas, distances, strict=True
        ):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            retrieved.append(
                RetrievedChunk(
                    chunk=self._metadata_to_chunk(chunk_id, meta, doc_text),
                    similarity_score=similarity,
                )
            )

        # Stable order for equal scores keeps repeated queries identical.
        retrieved.sort(key=lambda rc: (-rc.similarity_score, rc.chunk_id))
        logger.info(
            "chromadb_query",
            query_length=len(query_text),
            results_count=len(retrieved),
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved[:top_k]

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
        batch_size: int = 500,
    ) -> int:
        """Stage chunks (``published=False``), upserting in batches."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        try:
            collection = await self._get_collection()
            for start in range(0, len(chunks), batch_size):
                batch = chunks[start : start + batch_size]
                await asyncio.to_thread(
                    collection.upsert,
                    ids=[c.chunk_id for c in batch],
                    embeddings=embeddings[start : start + batch_size],
                    documents=[c.text for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB add_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_chunks_staged", count=len(chunks))
        return len(chunks)

    async def publish_document(self, document_id: str) -> int:
        """Flip every staged chunk of *document_id* to published in one update."""
        try:
            collection = await self._get_collection()
            staged = await asyncio.to_thread(
                collection.get,
                where={"$and": [{"document_id": document_id}, {_PUBLISHED: False}]},
                include=["metadatas"],
            )
            ids = staged["ids"] or []
            if not ids:
                return 0
            metadatas = [{**meta, _PUBLISHED: True} for meta in staged["metadatas"]]
            await asyncio.to_thread(collection.update, ids=ids, metadatas=metadatas)
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB publish failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_document_published", document_id=document_id, count=len(ids))
        return len(ids)

    async def delete_document(self, document_id: str) -> int:
        try:
            collection = await self._get_collection()
            existing = await asyncio.to_thread(
                collection.get, where={"document_id": document_id}, include=["metadatas"]
            )
            count = len(existing["ids"]) if existing["ids"] else 0
            if count:
                await asyncio.to_thread(collection.delete, ids=existing["ids"])
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_document_deleted", document_id=document_id, deleted_count=count)
        return count

    async def get_stats(self) -> CorpusStats:
        try:
            collection = await self._get_collection()
            page = await asyncio.to_thread(collection.get, include=["metadatas"])
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        published = 0
        staged = 0
        documents: set[str] = set()
        for meta in page["metadatas"] or []:
            if meta.get(_PUBLISHED):
                published += 1
                documents.add(str(meta.get("document_id", "")))
            else:
                staged += 1
        return CorpusStats(
            collection_name=self._collection_name,
            total_chunks=published,
            total_documents=len(documents),
            staged_chunks=staged,
        )

    async def ping(self) -> bool:
        try:
            collection = await self._get_collection()
            await asyncio.to_thread(collection.count)
            return True
        except Exception as exc:
            logger.warning("chromadb_ping_failed", error=str(exc))
            return False

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Metadata conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        """ChromaDB metadata values must be str, int, float or bool."""
        meta: dict[str, Any] = {
            "document_id": chunk.document_id,
            "sequence_index": chunk.sequence_index,
            "token_count": chunk.token_count,
            "source_title": chunk.source_title,
            "media_type": chunk.media_type,
            _PUBLISHED: False,
        }
        if chunk.page_number is not None:
            meta["page_number"] = chunk.page_number
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        return DocumentChunk(
            chunk_id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            text=text,
            sequence_index=int(meta.get("sequence_index", 0)),
            token_count=int(meta.get("token_count", 0)),
            source_title=str(meta.get("source_title", "")),
            media_type=str(meta.get("media_type", "")),
            page_number=meta.get("page_number"),
        )
