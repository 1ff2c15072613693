"""Shared pytest fixtures for the ragline test suite."""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.llm_provider import ILLMProvider
from ragline.models.catalog import (
    Collection,
    CollectionCreate,
    VectorStoreConfig,
    VectorStoreConfigCreate,
    VectorStoreType,
)
from ragline.providers.catalog.sqlite_catalog_provider import SQLiteCatalogProvider
from ragline.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragline.services.collection_service import CollectionService

EMBEDDING_DIM = 32


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic unit-length vector derived from the SHA-256 of *text*.

    Same text always produces the same vector.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b - 127.5) / 127.5 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class HashEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, model: str = "hash-embedding", dim: int = EMBEDDING_DIM) -> None:
        self._model = model
        self._dim = dim
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return hash_to_vector(text, self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "hash"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_memory_store():
    """Every test starts with an empty in-memory vector store registry."""
    InMemoryVectorStoreProvider.reset()
    yield
    InMemoryVectorStoreProvider.reset()


@pytest.fixture
def embedding_provider() -> HashEmbeddingProvider:
    return HashEmbeddingProvider()


@pytest.fixture
def embedding_factory(embedding_provider: HashEmbeddingProvider):
    """``model -> provider`` factory always returning the shared hash embedder."""
    return lambda model: embedding_provider


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    mock = MagicMock(spec=ILLMProvider)
    mock.complete = AsyncMock(return_value="")
    mock.get_model_name.return_value = "mock-llm"
    mock.get_provider_name.return_value = "mock"
    mock.is_available.return_value = True
    return mock


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def catalog(tmp_path: Path) -> SQLiteCatalogProvider:
    provider = SQLiteCatalogProvider(db_path=str(tmp_path / "catalog.db"))
    await provider.initialize()
    return provider


@pytest_asyncio.fixture
async def memory_store(catalog: SQLiteCatalogProvider) -> VectorStoreConfig:
    return await catalog.create_vector_store(
        VectorStoreConfigCreate(
            name="local-memory",
            type=VectorStoreType.MEMORY,
            connection_string="tests",
        )
    )


@pytest_asyncio.fixture
async def collection(
    catalog: SQLiteCatalogProvider, memory_store: VectorStoreConfig
) -> Collection:
    """An active collection of EMBEDDING_DIM-dimensional vectors, in Catalog and backend."""
    return await CollectionService(catalog).create_collection(
        CollectionCreate(
            vector_store_id=memory_store.id,
            name="handbook",
            description="Employee handbook",
            embedding_model="hash-embedding",
            embedding_dimensions=EMBEDDING_DIM,
        )
    )
