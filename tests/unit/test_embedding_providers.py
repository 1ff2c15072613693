"""Unit tests for the embedding and LLM provider adapters and their factories."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from ragline.config.settings import Settings
from ragline.providers.embedding.factory import create_embedding_provider
from ragline.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from ragline.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragline.providers.llm.factory import create_llm_provider
from ragline.providers.llm.ollama_provider import OllamaLLMProvider
from ragline.providers.llm.openai_provider import OpenAILLMProvider
from ragline.utils.errors import ConfigurationError, EmbeddingError, LLMError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _embedding_response(vectors: list[list[float]], order: list[int] | None = None) -> MagicMock:
    indices = order if order is not None else list(range(len(vectors)))
    response = MagicMock()
    response.data = [MagicMock(embedding=v, index=i) for v, i in zip(vectors, indices)]
    response.usage = MagicMock(total_tokens=12)
    return response


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "http://test/embeddings"))


# ======================================================================
# OpenAI embeddings
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def test_model_and_dimension(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(), model="text-embedding-3-large")
        assert provider.get_model_name() == "text-embedding-3-large"
        assert provider.get_dimension() == 3072

    def test_default_model_from_settings(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        assert provider.get_model_name() == "text-embedding-3-small"
        assert provider.get_dimension() == 1536

    def test_is_available_follows_api_key(self) -> None:
        assert OpenAIEmbeddingProvider(_settings()).is_available() is True
        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    def test_compatible_endpoint_label(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(openai_base_url="http://vllm:8000/v1"))
        assert provider.get_provider_name() == "openai-compatible_embedding"

    @pytest.mark.asyncio
    async def test_embed_orders_by_index(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=_embedding_response([[0.2, 0.2], [0.1, 0.1]], order=[1, 0])
        )

        with patch(
            "ragline.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            result = await provider.embed(["first", "second"])

        assert result == [[0.1, 0.1], [0.2, 0.2]]
        mock_client.embeddings.create.assert_awaited_once_with(
            input=["first", "second"], model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_embed_single_uses_batch_call(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response([[0.5]]))

        with patch(
            "ragline.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            assert await provider.embed_single("q") == [0.5]

    @pytest.mark.asyncio
    async def test_embed_empty_skips_api(self) -> None:
        mock_client = AsyncMock()
        with patch(
            "ragline.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            assert await provider.embed([]) == []
        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_short_response_raises(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response([[0.1]]))

        with patch(
            "ragline.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError, match="Expected 2 embeddings"):
                await provider.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_connection_error())

        with patch(
            "ragline.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["a"])

        assert exc_info.value.provider_name == "openai_embedding"


# ======================================================================
# Ollama embeddings
# ======================================================================


class TestOllamaEmbeddingProvider:
    def test_defaults(self) -> None:
        provider = OllamaEmbeddingProvider(_settings())
        assert provider.get_model_name() == "nomic-embed-text"
        assert provider.get_dimension() == 768
        assert provider.get_provider_name() == "ollama_embedding"

    def test_client_points_at_v1_endpoint(self) -> None:
        with patch(
            "ragline.providers.embedding.ollama_embedding_provider.openai.AsyncOpenAI"
        ) as client_cls:
            OllamaEmbeddingProvider(_settings(ollama_base_url="http://gpu-box:11434/"))

        assert client_cls.call_args.kwargs["base_url"] == "http://gpu-box:11434/v1"

    @pytest.mark.asyncio
    async def test_embed(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response([[1.0, 0.0]]))

        with patch(
            "ragline.providers.embedding.ollama_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OllamaEmbeddingProvider(_settings(), model="all-minilm")
            assert await provider.embed(["x"]) == [[1.0, 0.0]]
            assert provider.get_dimension() == 384

    def test_unreachable_server_not_available(self) -> None:
        provider = OllamaEmbeddingProvider(_settings())
        with patch(
            "ragline.providers.embedding.ollama_embedding_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            assert provider.is_available() is False


# ======================================================================
# LLM providers
# ======================================================================


class TestOpenAILLMProvider:
    @pytest.mark.asyncio
    async def test_complete_returns_message_content(self) -> None:
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content="[1, 0]"))]
        response.usage = MagicMock(total_tokens=30)
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=response)

        with patch(
            "ragline.providers.llm.openai_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAILLMProvider(_settings(), model="gpt-4o")
            answer = await provider.complete(system_prompt="sys", user_prompt="user")

        assert answer == "[1, 0]"
        kwargs = mock_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content=None))]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=response)

        with patch(
            "ragline.providers.llm.openai_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError):
                await provider.complete(system_prompt="s", user_prompt="u")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_connection_error())

        with patch(
            "ragline.providers.llm.openai_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError):
                await provider.complete(system_prompt="s", user_prompt="u")


# ======================================================================
# Factories
# ======================================================================


class TestFactories:
    def test_embedding_factory_selects_provider(self) -> None:
        assert isinstance(
            create_embedding_provider(_settings(embedding_provider="openai"), "text-embedding-3-small"),
            OpenAIEmbeddingProvider,
        )
        assert isinstance(
            create_embedding_provider(_settings(embedding_provider="Ollama")),
            OllamaEmbeddingProvider,
        )

    def test_embedding_factory_passes_model(self) -> None:
        provider = create_embedding_provider(_settings(), "text-embedding-ada-002")
        assert provider.get_model_name() == "text-embedding-ada-002"

    def test_unknown_embedding_provider(self) -> None:
        with pytest.raises(ConfigurationError):
            create_embedding_provider(_settings(embedding_provider="cohere"))

    def test_llm_factory(self) -> None:
        assert isinstance(create_llm_provider(_settings(), "gpt-4o-mini"), OpenAILLMProvider)
        assert isinstance(
            create_llm_provider(_settings(llm_provider="ollama"), "llama3"), OllamaLLMProvider
        )
        with pytest.raises(ConfigurationError):
            create_llm_provider(_settings(llm_provider="bard"))
