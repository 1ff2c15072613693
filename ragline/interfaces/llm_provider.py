"""Abstract base class for LLM service providers.

Used by the optional LLM cleansing pass and the model-based reranker.
Implementations wrap the OpenAI API (or a compatible endpoint) and a local
Ollama server.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, OllamaLLMProvider
# Located in: ragline/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        ragline.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier used for completions."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials/endpoint are configured."""
