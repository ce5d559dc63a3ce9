"""Unit tests for Settings and load_settings."""

from __future__ import annotations

import pytest

from plantops.config.settings import load_settings
from plantops.utils.errors import ConfigurationError
from tests.conftest import make_settings

_MANDATORY = (
    "PORT",
    "OLLAMA_HOST",
    "OLLAMA_PORT",
    "CHROMADB_HOST",
    "CHROMADB_PORT",
    "CHROMADB_COLLECTION_NAME",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _MANDATORY:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadSettings:
    def test_reads_mandatory_values_from_environment(self, clean_env: pytest.MonkeyPatch) -> None:
        values = {
            "PORT": "3001",
            "OLLAMA_HOST": "ollama",
            "OLLAMA_PORT": "11434",
            "CHROMADB_HOST": "chroma",
            "CHROMADB_PORT": "8000",
            "CHROMADB_COLLECTION_NAME": "plant_docs",
        }
        for name, value in values.items():
            clean_env.setenv(name, value)

        settings = load_settings(_env_file=None)

        assert settings.port == 3001
        assert settings.chromadb_collection_name == "plant_docs"
        assert settings.ollama_base_url == "http://ollama:11434"

    def test_missing_mandatory_values_raise_configuration_error(
        self, clean_env: pytest.MonkeyPatch
    ) -> None:
        clean_env.setenv("PORT", "3001")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_env_file=None)

        missing = exc_info.value.message.split(": ", 1)[1].split(", ")
        assert "OLLAMA_HOST" in missing
        assert "CHROMADB_COLLECTION_NAME" in missing
        assert "PORT" not in missing

    def test_invalid_value_is_reported(self, clean_env: pytest.MonkeyPatch) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(
                _env_file=None,
                port="not-a-number",
                ollama_host="localhost",
                ollama_port=11434,
                chromadb_host="localhost",
                chromadb_port=8000,
                chromadb_collection_name="c",
            )
        assert "invalid values for: PORT" in exc_info.value.message


class TestSettingsHelpers:
    def test_defaults(self) -> None:
        settings = make_settings()
        assert settings.max_file_size == 104_857_600
        assert settings.chat_history_window == 5
        assert settings.is_production is False

    def test_base_url_keeps_explicit_scheme(self) -> None:
        settings = make_settings(ollama_host="https://gpu-box")
        assert settings.ollama_base_url == "https://gpu-box:11434"

    def test_allowed_media_types_ignores_unknown_extensions(self) -> None:
        settings = make_settings(allowed_file_types="pdf, .TXT, exe")
        assert settings.get_allowed_media_types() == {
            "pdf": "application/pdf",
            "txt": "text/plain",
        }

    def test_cors_origins_split(self) -> None:
        settings = make_settings(cors_origins="http://a.local, http://b.local,")
        assert settings.get_cors_origins() == ["http://a.local", "http://b.local"]
