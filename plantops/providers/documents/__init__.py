from plantops.providers.documents.memory_document_registry import MemoryDocumentRegistry

__all__ = ["MemoryDocumentRegistry"]
