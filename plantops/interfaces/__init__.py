"""Abstract provider interfaces.

Services depend only on these contracts; concrete implementations live in
``plantops.providers`` and are wired together in ``plantops.main``.
"""

from plantops.interfaces.document_registry import IDocumentRegistry
from plantops.interfaces.embedding_provider import IEmbeddingProvider
from plantops.interfaces.llm_provider import ILLMProvider
from plantops.interfaces.session_store import ISessionStore
from plantops.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentRegistry",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ISessionStore",
    "IVectorStoreProvider",
]
