"""LLM provider adapters.

Two concrete implementations of ILLMProvider (ragline/interfaces/llm_provider.py):
    - OpenAILLMProvider - gpt-4o-mini et al. (also any OpenAI-compatible API)
    - OllamaLLMProvider - local models via an Ollama server

Used only by the LLM cleansing pass and the model-based reranker.
``create_llm_provider`` picks one from ``Settings.llm_provider``.
"""

from ragline.providers.llm.factory import create_llm_provider
from ragline.providers.llm.ollama_provider import OllamaLLMProvider
from ragline.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OllamaLLMProvider", "OpenAILLMProvider", "create_llm_provider"]
