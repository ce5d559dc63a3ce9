"""Application settings loaded from environment variables via pydantic-settings.

Values come from two sources, in priority order:

  1. Environment variables, e.g. ``OLLAMA_HOST=ollama``
  2. A ``.env`` file in the working directory

Field names map to upper-cased variable names (``chromadb_port`` reads
``CHROMADB_PORT``).  Fields without a default are mandatory: the server
refuses to start when any of them is missing (see :func:`load_settings`).
"""

from __future__ import annotations

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from plantops.utils.errors import ConfigurationError

# Upload extensions the ingestion pipeline knows how to extract, mapped to
# the media type recorded on the Document.
MEDIA_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain",
    "md": "text/markdown",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


class Settings(BaseSettings):
    """PlantOps application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Server (mandatory) ===
    port: int

    # === Ollama (mandatory host/port) ===
    ollama_host: str
    ollama_port: int
    ollama_model_chat: str = "llama3.2:3b"
    ollama_model_embedding: str = "nomic-embed-text:v1.5"
    ollama_model_vision: str = "llava"
    ollama_timeout: float = 120.0
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2000

    # === ChromaDB (mandatory) ===
    chromadb_host: str
    chromadb_port: int
    chromadb_collection_name: str

    # === Uploads ===
    max_file_size: int = 104_857_600  # 100 MB
    allowed_file_types: str = "pdf,docx,txt,png,jpg,jpeg"

    # === RAG ===
    rag_top_k: int = 5
    chunk_size: int = 500
    chunk_overlap: int = 100
    retrieval_timeout_seconds: float = 10.0

    # === Chat sessions ===
    chat_history_window: int = 5
    session_ttl_seconds: int = 3600
    session_max_entries: int = 1000

    # === Document registry ===
    document_registry_max_entries: int = 10_000

    # === Rate limiting ===
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900
    upload_rate_limit_max_requests: int = 10
    upload_rate_limit_window_seconds: int = 3600

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000"

    @property
    def ollama_base_url(self) -> str:
        host = self.ollama_host
        if not host.startswith(("http://", "https://")):
            host = f"http://{host}"
        return f"{host}:{self.ollama_port}"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def get_allowed_media_types(self) -> dict[str, str]:
        """Return the configured extensions mapped to their media types.

        Extensions the extractor does not recognise are ignored.
        """
        allowed: dict[str, str] = {}
        for ext in self.allowed_file_types.split(","):
            ext = ext.strip().lower().lstrip(".")
            if ext in MEDIA_TYPES:
                allowed[ext] = MEDIA_TYPES[ext]
        return allowed

    def get_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def load_settings(**overrides: object) -> Settings:
    """Build :class:`Settings`, converting validation failures to ConfigurationError.

    Raises
    ------
    ConfigurationError
        If a mandatory variable is missing or a value cannot be parsed.
    """
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        missing = [
            str(err["loc"][0]).upper()
            for err in exc.errors()
            if err["type"] == "missing" and err["loc"]
        ]
        invalid = [
            str(err["loc"][0]).upper()
            for err in exc.errors()
            if err["type"] != "missing" and err["loc"]
        ]
        parts: list[str] = []
        if missing:
            parts.append("missing required environment variables: " + ", ".join(missing))
        if invalid:
            parts.append("invalid values for: " + ", ".join(invalid))
        raise ConfigurationError(message="; ".join(parts) or str(exc)) from exc
