"""Abstract base class for completion (LLM) providers.

Defines the contract for the language-model backend used for chat replies,
troubleshooting step generation and vision-based text extraction from
uploaded images.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaLLMProvider (plantops/providers/llm/)
class ILLMProvider(ABC):
    """Contract for completion services.

    Providers must support plain text completion; vision (image analysis) is
    optional and declared via :meth:`supports_vision`.  No retry policy is
    applied at this layer.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The prompt containing context, history and the operator's question.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        plantops.utils.errors.GenerationError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Extract text from an image using the model's vision capability.

        Raises
        ------
        NotImplementedError
            If the provider does not support vision.
        plantops.utils.errors.ExtractionError
            If the API call fails.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if this provider can process image inputs."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"ollama"``."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the model names installed on the backing server.

        Raises
        ------
        plantops.utils.errors.ProviderUnavailableError
            If the server cannot be reached.
        """

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight call to confirm the server responds.

        Returns ``False`` instead of raising when the server is unreachable.
        """
