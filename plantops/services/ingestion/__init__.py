"""Document ingestion pipeline: extract -> chunk -> embed -> stage -> publish."""

from plantops.services.ingestion.chunker import TextChunker
from plantops.services.ingestion.extractors import TextExtractor
from plantops.services.ingestion.ingestion_service import IngestionService

__all__ = ["IngestionService", "TextChunker", "TextExtractor"]
