"""Unit tests for the plantops.cli.ingest command."""

from __future__ import annotations

import asyncio
from argparse import Namespace
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from plantops.cli import ingest
from plantops.config.settings import MEDIA_TYPES
from plantops.providers.documents import MemoryDocumentRegistry
from plantops.services.ingestion import IngestionService, TextChunker, TextExtractor
from plantops.utils.errors import ConfigurationError
from tests.conftest import MockEmbeddingProvider, MockVectorStore, RecordingLLM


def _components() -> dict[str, Any]:
    vector_store = MockVectorStore()
    registry = MemoryDocumentRegistry()
    closeable = MagicMock()
    closeable.close = AsyncMock()
    return {
        "vector_store": vector_store,
        "document_registry": registry,
        "ingestion_service": IngestionService(
            extractor=TextExtractor(llm_provider=RecordingLLM()),
            chunker=TextChunker(chunk_size=50, overlap=10),
            embedding_provider=MockEmbeddingProvider(),
            vector_store=vector_store,
            registry=registry,
            allowed_media_types=dict(MEDIA_TYPES),
            max_file_size=10_000,
        ),
        "closeables": [closeable],
    }


class TestMain:
    def test_no_arguments_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert ingest.main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_configuration_error_exits_1(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        def _fail() -> None:
            raise ConfigurationError(message="missing required configuration: PORT")

        monkeypatch.setattr(ingest, "load_settings", _fail)

        assert ingest.main(["--stats"]) == 1
        assert "missing required configuration: PORT" in capsys.readouterr().err


class TestRun:
    def test_ingests_files_and_reports(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        good = tmp_path / "alarms.md"
        good.write_text("# Alarm list\n\nHigh exhaust temperature on cylinder 4.", encoding="utf-8")
        bad = tmp_path / "setup.exe"
        bad.write_bytes(b"MZ")
        missing = tmp_path / "gone.txt"
        components = _components()

        status = asyncio.run(
            ingest._run(Namespace(files=[good, bad, missing], stats=True), components)
        )

        out = capsys.readouterr().out
        assert status == 1
        assert f"OK        {good}" in out
        assert f"REJECTED  {bad}" in out
        assert f"REJECTED  {missing}: cannot read file" in out
        assert "Published chunks: 1" in out
        assert "1/3 documents ingested" in out
        components["closeables"][0].close.assert_awaited_once()

    def test_all_files_ok_exits_0(self, tmp_path: Path) -> None:
        doc = tmp_path / "notes.txt"
        doc.write_text("Replace the coolant strainer every 500 hours.", encoding="utf-8")

        status = asyncio.run(ingest._run(Namespace(files=[doc], stats=False), _components()))

        assert status == 0
