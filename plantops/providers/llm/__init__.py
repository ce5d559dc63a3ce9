from plantops.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["OllamaLLMProvider"]
