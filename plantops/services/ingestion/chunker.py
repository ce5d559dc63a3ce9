"""Text chunking with overlapping windows and paragraph boundary preservation.

Splits extracted document text into :class:`~plantops.models.rag.DocumentChunk`
objects sized for the embedding model (~500 tokens each with 100-token
overlap by default).

1. **Paragraph-preserving** -- chunk boundaries align with paragraph breaks
   (blank lines) so a procedure step is not cut in half.
2. **Overlapping windows** -- consecutive chunks share up to ``overlap``
   tokens of trailing paragraphs.

A paragraph larger than the budget is split at sentence boundaries with an
abbreviation-aware splitter.  Token counts use the ``len(text) // 4``
approximation, which keeps the policy deterministic: the same text always
yields the same chunks with the same ids.
"""

from __future__ import annotations

import re

import structlog

from plantops.models.rag import DocumentChunk, make_chunk_id

logger = structlog.get_logger(logger_name=__name__)

# Abbreviations that should NOT end a sentence ("approx. 40 bar").
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "No",
        "Nr",
        "Fig",
        "Tab",
        "Ref",
        "vs",
        "etc",
        "approx",
        "max",
        "min",
        "ca",
        "eg",
        "ie",
    }
)


def count_tokens(text: str) -> int:
    """Approximate token count used for chunk budgeting."""
    return len(text) // 4


class TextChunker:
    """Splits text into overlapping chunks preserving paragraph boundaries.

    Parameters
    ----------
    chunk_size:
        Target maximum token count per chunk (default 500).
    overlap:
        Maximum tokens of trailing paragraphs repeated at the start of the
        next chunk (default 100).  Zero disables overlap.
    """

    def __init__(self, chunk_size: int = 500, overlap: int = 100) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must be >= 0 and smaller than chunk_size")
        self._chunk_size = chunk_size
        self._overlap = overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        document_id: str,
        source_title: str = "",
        media_type: str = "",
    ) -> list[DocumentChunk]:
        """Split *text* into :class:`DocumentChunk` objects for *document_id*.

        Returns
        -------
        list[DocumentChunk]
            Chunks in document order, ``sequence_index`` starting at 0.
            Empty or whitespace-only input returns an empty list.
        """
        if not text or not text.strip():
            return []

        paragraphs = self._split_paragraphs(text)
        raw_chunks = self._accumulate_chunks(paragraphs)

        chunks = [
            DocumentChunk(
                chunk_id=make_chunk_id(document_id, index),
                document_id=document_id,
                text=chunk_text,
                sequence_index=index,
                token_count=count_tokens(chunk_text),
                source_title=source_title,
                media_type=media_type,
            )
            for index, chunk_text in enumerate(raw_chunks)
        ]

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=len(chunks),
            paragraphs=len(paragraphs),
        )
        return chunks

    # ------------------------------------------------------------------
    # Paragraph / sentence splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        parts = re.split(r"\n\s*\n", text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split at ``.``/``!``/``?`` followed by whitespace, skipping abbreviations.

        Abbreviation periods are masked with ``\\x00`` (same length, so
        indices into the original text stay aligned).
        """
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = masked.replace(f"{abbr}.", f"{abbr}\x00")

        sentences: list[str] = []
        last = 0
        for match in re.finditer(r"[.!?](?:\s|$)", masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)

        return sentences or [text]

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    def _accumulate_chunks(self, paragraphs: list[str]) -> list[str]:
        """Greedily pack paragraphs until the next one would exceed the budget."""
        chunks: list[str] = []
        current_parts: list[tuple[str, int]] = []
        current_tokens = 0

        for para in paragraphs:
            para_tokens = count_tokens(para)

            if para_tokens > self._chunk_size:
                if current_parts:
                    chunks.append("\n\n".join(t for t, _ in current_parts))
                    current_parts = []
                    current_tokens = 0
                chunks.extend(self._chunk_long_paragraph(para))
                continue

            if current_tokens + para_tokens > self._chunk_size and current_parts:
                chunks.append("\n\n".join(t for t, _ in current_parts))
                current_parts, current_tokens = self._build_overlap(current_parts, para_tokens)

            current_parts.append((para, para_tokens))
            current_tokens += para_tokens

        if current_parts:
            chunks.append("\n\n".join(t for t, _ in current_parts))

        return chunks

    def _chunk_long_paragraph(self, paragraph: str) -> list[str]:
        chunks: list[str] = []
        current_parts: list[tuple[str, int]] = []
        current_tokens = 0

        for sentence in self._split_sentences(paragraph):
            sent_tokens = count_tokens(sentence)
            if current_tokens + sent_tokens > self._chunk_size and current_parts:
                chunks.append(" ".join(t for t, _ in current_parts))
                current_parts, current_tokens = self._build_overlap(current_parts, sent_tokens)
            current_parts.append((sentence, sent_tokens))
            current_tokens += sent_tokens

        if current_parts:
            chunks.append(" ".join(t for t, _ in current_parts))

        return chunks

    def _build_overlap(
        self, parts: list[tuple[str, int]], next_tokens: int
    ) -> tuple[list[tuple[str, int]], int]:
        """Return tail entries of *parts* to carry into the next chunk.

        The carried tokens never exceed ``overlap`` and always leave room
        for the *next_tokens* entry that opens the new chunk.
        """
        budget = min(self._overlap, self._chunk_size - next_tokens)
        overlap_parts: list[tuple[str, int]] = []
        overlap_tokens = 0
        for text, tok_count in reversed(parts):
            if overlap_tokens + tok_count > budget:
                break
            overlap_parts.insert(0, (text, tok_count))
            overlap_tokens += tok_count
        return overlap_parts, overlap_tokens
