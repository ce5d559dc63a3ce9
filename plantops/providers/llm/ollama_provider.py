"""Ollama completion provider.

Wraps an Ollama server through its OpenAI-compatible ``/v1`` endpoint using
the ``openai`` client library.  Ollama's native ``/api/tags`` endpoint is
queried with httpx for health checks and the installed-model list.
"""

from __future__ import annotations

import base64

import httpx
import openai
import structlog

from plantops.config.settings import Settings
from plantops.interfaces.llm_provider import ILLMProvider
from plantops.utils.errors import ExtractionError, GenerationError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)


def _detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    return "image/jpeg"


class OllamaLLMProvider(ILLMProvider):
    """Completion provider backed by an Ollama server.

    Parameters
    ----------
    settings:
        Supplies the server address (``OLLAMA_HOST``/``OLLAMA_PORT``), the
        chat and vision model names and the request timeout.
    client:
        Optional pre-built ``openai.AsyncOpenAI``; tests pass a mock.
    http_client:
        Optional shared ``httpx.AsyncClient`` for the native API.
    """

    def __init__(
        self,
        settings: Settings,
        client: openai.AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = client or openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Ollama ignores the key but the SDK requires one.
            api_key="ollama",
            timeout=settings.ollama_timeout,
            max_retries=0,
        )
        self._http = http_client or httpx.AsyncClient(timeout=5.0)
        self._text_model = settings.ollama_model_chat
        self._vision_model = settings.ollama_model_vision

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion via Ollama's OpenAI-compatible API."""
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise GenerationError(
                message=f"generation failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError(
                message="generation failed: empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_completion", model=self._text_model, chars=len(content))
        return content

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Extract text from an image using the configured vision model."""
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = _detect_media_type(image_bytes)
        try:
            response = await self._client.chat.completions.create(
                model=self._vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{media_type};base64,{b64}"},
                            },
                        ],
                    }
                ],
                max_tokens=4000,
            )
        except openai.APIError as exc:
            raise ExtractionError(
                message=f"vision extraction failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise ExtractionError(
                message="vision model returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_vision_extract", model=self._vision_model)
        return content

    def supports_vision(self) -> bool:
        return bool(self._vision_model)

    async def list_models(self) -> list[str]:
        """Return installed model names from Ollama's ``/api/tags``."""
        try:
            response = await self._http.get(f"{self._base_url}/api/tags")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Ollama unreachable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        payload = response.json()
        return [m.get("name", "") for m in payload.get("models", [])]

    async def validate_credentials(self) -> bool:
        """Return ``True`` if the Ollama server answers ``/api/tags``."""
        try:
            response = await self._http.get(f"{self._base_url}/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"

    async def close(self) -> None:
        await self._client.close()
        await self._http.aclose()
