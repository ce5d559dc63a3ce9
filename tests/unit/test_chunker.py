"""Unit tests for TextChunker: paragraph-preserving overlapping chunks."""

from __future__ import annotations

import pytest

from plantops.services.ingestion.chunker import TextChunker, count_tokens


def _paragraph(word: str, tokens: int) -> str:
    """Paragraph of exactly *tokens* tokens with no whitespace or sentence breaks."""
    return (word + "-" * tokens * 4)[: tokens * 4]


class TestTokenCount:
    def test_len_div_four(self) -> None:
        assert count_tokens("") == 0
        assert count_tokens("abc") == 0
        assert count_tokens("abcd") == 1
        assert count_tokens("a" * 401) == 100


class TestConstructor:
    def test_rejects_non_positive_chunk_size(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=0)

    def test_rejects_overlap_not_smaller_than_chunk(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=100, overlap=100)

    def test_rejects_negative_overlap(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=100, overlap=-1)


class TestChunking:
    def test_empty_text_returns_no_chunks(self) -> None:
        assert TextChunker().chunk("   \n\n  ", document_id="d1") == []

    def test_short_text_is_one_chunk(self) -> None:
        chunks = TextChunker().chunk("Lube oil pressure low.", document_id="d1")
        assert len(chunks) == 1
        assert chunks[0].text == "Lube oil pressure low."
        assert chunks[0].chunk_id == "d1-0"
        assert chunks[0].sequence_index == 0

    def test_small_paragraphs_are_packed_together(self) -> None:
        text = "Step one.\n\nStep two.\n\nStep three."
        chunks = TextChunker(chunk_size=100, overlap=10).chunk(text, document_id="d1")
        assert len(chunks) == 1
        assert chunks[0].text == "Step one.\n\nStep two.\n\nStep three."

    def test_paragraphs_that_do_not_fit_together_become_one_chunk_each(self) -> None:
        paragraphs = [_paragraph(w, 40) for w in ("alpha", "bravo", "charlie", "delta")]
        chunks = TextChunker(chunk_size=50, overlap=10).chunk(
            "\n\n".join(paragraphs), document_id="doc"
        )
        assert [c.text for c in chunks] == paragraphs
        assert [c.chunk_id for c in chunks] == ["doc-0", "doc-1", "doc-2", "doc-3"]

    def test_overlap_carries_trailing_paragraph(self) -> None:
        small = _paragraph("shim", 8)
        paragraphs = [_paragraph("alpha", 30), small, _paragraph("bravo", 30)]
        chunks = TextChunker(chunk_size=50, overlap=10).chunk(
            "\n\n".join(paragraphs), document_id="doc"
        )
        assert len(chunks) == 2
        assert chunks[0].text.endswith(small)
        assert chunks[1].text.startswith(small)

    def test_chunks_never_exceed_budget_with_overlap(self) -> None:
        paragraphs = [_paragraph(f"w{i}", 12 + (i % 5) * 3) for i in range(30)]
        chunker = TextChunker(chunk_size=60, overlap=20)
        for chunk in chunker.chunk("\n\n".join(paragraphs), document_id="doc"):
            assert count_tokens(chunk.text.replace("\n\n", "")) <= 60

    def test_long_paragraph_split_at_sentences(self) -> None:
        sentence = "The coolant pump tripped on overload during start-up. "
        paragraph = sentence * 40
        chunks = TextChunker(chunk_size=100, overlap=0).chunk(paragraph, document_id="doc")
        assert len(chunks) > 1
        for chunk in chunks:
            assert chunk.text.endswith(".")

    def test_abbreviations_do_not_split_sentences(self) -> None:
        sentences = TextChunker._split_sentences("Set approx. 40 bar. Then check Fig. 3 again.")
        assert sentences == ["Set approx. 40 bar.", "Then check Fig. 3 again."]

    def test_chunking_is_deterministic(self) -> None:
        text = "\n\n".join(_paragraph(f"p{i}", 25) for i in range(12))
        chunker = TextChunker(chunk_size=80, overlap=20)
        first = chunker.chunk(text, document_id="doc", source_title="manual.pdf")
        second = chunker.chunk(text, document_id="doc", source_title="manual.pdf")
        assert first == second

    def test_metadata_is_propagated(self) -> None:
        chunks = TextChunker().chunk(
            "Turbine vibration high.",
            document_id="d9",
            source_title="turbine.md",
            media_type="text/markdown",
        )
        assert chunks[0].document_id == "d9"
        assert chunks[0].source_title == "turbine.md"
        assert chunks[0].media_type == "text/markdown"
