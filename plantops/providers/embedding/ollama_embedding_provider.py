"""Ollama embedding provider.

Implements :class:`IEmbeddingProvider` with the embedding model served by
Ollama (``nomic-embed-text`` by default, 768 dimensions) through the
OpenAI-compatible ``/v1`` endpoint.
"""

from __future__ import annotations

import openai
import structlog

from plantops.config.settings import Settings
from plantops.interfaces.embedding_provider import IEmbeddingProvider
from plantops.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OLLAMA_BATCH_LIMIT = 512
_NOMIC_DIMENSION = 768


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an Ollama-served model.

    Handles automatic batching for inputs exceeding 512 texts per call.
    """

    def __init__(
        self,
        settings: Settings,
        client: openai.AsyncOpenAI | None = None,
        dimension: int = _NOMIC_DIMENSION,
    ) -> None:
        base_url = settings.ollama_base_url.rstrip("/")
        self._client = client or openai.AsyncOpenAI(
            base_url=f"{base_url}/v1",
            api_key="ollama",
            timeout=settings.ollama_timeout,
            max_retries=0,
        )
        self._model = settings.ollama_model_embedding
        self._dimension = dimension

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors, splitting into batches of 512."""
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        try:
            for start in range(0, len(texts), _OLLAMA_BATCH_LIMIT):
                batch = texts[start : start + _OLLAMA_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.debug(
                    "ollama_embedding_batch",
                    model=self._model,
                    batch_size=len(batch),
                )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"embedding failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if len(all_embeddings) != len(texts):
            raise EmbeddingError(
                message=(
                    f"embedding count mismatch: sent {len(texts)}, "
                    f"received {len(all_embeddings)}"
                ),
                provider_name=self.get_provider_name(),
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "ollama_embedding"

    async def close(self) -> None:
        await self._client.close()
