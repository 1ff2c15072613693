"""Unit tests for the ChromaDB vector store adapter.

Runs a real ``chromadb.PersistentClient`` in a temporary directory.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from ragline.models.rag import VectorDocument
from ragline.providers.vector_store.chromadb_provider import (
    ChromaDBProvider,
    _scalar_metadata,
    _where_clause,
)
from ragline.utils.errors import NotFoundError, ValidationError, VectorStoreError


def _doc(doc_id: str, vector: list[float], **metadata) -> VectorDocument:
    return VectorDocument(
        id=doc_id, content=f"text {doc_id}", embedding=vector, metadata=metadata
    )


@pytest_asyncio.fixture
async def provider(tmp_path):
    async with ChromaDBProvider(connection_string=str(tmp_path / "chroma")) as store:
        await store.create_collection("handbook", 3, metadata={"description": "HR"})
        yield store


class TestLifecycle:
    def test_provider_name_and_availability(self, tmp_path) -> None:
        store = ChromaDBProvider(connection_string=str(tmp_path / "chroma"))
        assert store.get_provider_name() == "chromadb"
        assert store.is_available() is False

    @pytest.mark.asyncio
    async def test_calls_before_connect_raise(self, tmp_path) -> None:
        store = ChromaDBProvider(connection_string=str(tmp_path / "chroma"))
        with pytest.raises(VectorStoreError):
            await store.list_collections()


class TestCollections:
    @pytest.mark.asyncio
    async def test_list_and_get(self, provider) -> None:
        [info] = await provider.list_collections()

        assert info.name == "handbook"
        assert info.description == "HR"
        assert info.metadata["dimensions"] == 3
        assert "hnsw:space" not in info.metadata
        assert await provider.get_collection("missing") is None

    @pytest.mark.asyncio
    async def test_recreate_same_dimensions_is_noop(self, provider) -> None:
        await provider.create_collection("handbook", 3)
        assert len(await provider.list_collections()) == 1

    @pytest.mark.asyncio
    async def test_recreate_other_dimensions_rejected(self, provider) -> None:
        with pytest.raises(ValidationError):
            await provider.create_collection("handbook", 8)

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, provider) -> None:
        await provider.delete_collection("handbook")
        await provider.delete_collection("handbook")
        assert await provider.list_collections() == []

    @pytest.mark.asyncio
    async def test_stats(self, provider) -> None:
        await provider.add_documents("handbook", [_doc("1_0", [1.0, 0.0, 0.0])])

        stats = await provider.get_collection_stats("handbook")

        assert stats.document_count == 1
        assert stats.dimensions == 3
        assert stats.index_type == "hnsw:cosine"


class TestDocuments:
    @pytest.mark.asyncio
    async def test_search_returns_nearest_first(self, provider) -> None:
        await provider.add_documents(
            "handbook",
            [
                _doc("1_0", [1.0, 0.0, 0.0], documentId=1),
                _doc("1_1", [0.0, 1.0, 0.0], documentId=1),
                _doc("2_0", [0.9, 0.1, 0.0], documentId=2),
            ],
        )

        hits = await provider.search("handbook", [1.0, 0.0, 0.0], k=2)

        assert [h.id for h in hits] == ["1_0", "2_0"]
        assert hits[0].score == pytest.approx(1.0, abs=1e-4)
        assert hits[0].metadata["documentId"] == 1

    @pytest.mark.asyncio
    async def test_search_with_filter(self, provider) -> None:
        await provider.add_documents(
            "handbook",
            [
                _doc("1_0", [1.0, 0.0, 0.0], documentId=1),
                _doc("2_0", [0.9, 0.1, 0.0], documentId=2),
            ],
        )

        hits = await provider.search("handbook", [1.0, 0.0, 0.0], k=5, filter={"documentId": 2})

        assert [h.id for h in hits] == ["2_0"]

    @pytest.mark.asyncio
    async def test_search_empty_collection(self, provider) -> None:
        assert await provider.search("handbook", [1.0, 0.0, 0.0], k=5) == []

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self, provider) -> None:
        with pytest.raises(ValidationError):
            await provider.add_documents("handbook", [_doc("1_0", [1.0, 0.0])])

    @pytest.mark.asyncio
    async def test_get_and_delete_document(self, provider) -> None:
        await provider.add_documents("handbook", [_doc("1_0", [0.0, 0.0, 1.0], chunkIndex=0)])

        stored = await provider.get_document("handbook", "1_0")
        assert stored.content == "text 1_0"
        assert stored.embedding == pytest.approx([0.0, 0.0, 1.0])
        assert stored.metadata == {"chunkIndex": 0}

        await provider.delete_documents("handbook", ["1_0", "never-existed"])
        assert await provider.get_document("handbook", "1_0") is None

    @pytest.mark.asyncio
    async def test_delete_by_document_filter(self, provider) -> None:
        await provider.add_documents(
            "handbook",
            [
                _doc("1_0", [1.0, 0.0, 0.0], documentId=1),
                _doc("1_1", [0.0, 1.0, 0.0], documentId=1),
                _doc("2_0", [0.0, 0.0, 1.0], documentId=2),
            ],
        )

        await provider.delete_by_filter("handbook", {"documentId": 1})

        assert (await provider.get_collection_stats("handbook")).document_count == 1
        assert await provider.get_document("handbook", "2_0") is not None

    @pytest.mark.asyncio
    async def test_search_with_wrong_query_length_rejected(self, provider) -> None:
        await provider.add_documents("handbook", [_doc("1_0", [1.0, 0.0, 0.0])])

        with pytest.raises(ValidationError):
            await provider.search("handbook", [1.0, 0.0], k=1)

    @pytest.mark.asyncio
    async def test_missing_collection_raises_not_found(self, provider) -> None:
        with pytest.raises(NotFoundError):
            await provider.add_documents("nope", [_doc("1_0", [1.0, 0.0, 0.0])])


class TestHelpers:
    def test_scalar_metadata_drops_none_and_encodes_containers(self) -> None:
        assert _scalar_metadata({"a": 1, "b": None, "c": [1, 2], "d": {"x": True}}) == {
            "a": 1,
            "c": "[1, 2]",
            "d": '{"x": true}',
        }

    def test_where_clause_single_and_multiple(self) -> None:
        assert _where_clause({"documentId": 3}) == {"documentId": {"$eq": 3}}
        assert _where_clause({"a": 1, "b": "x"}) == {
            "$and": [{"a": {"$eq": 1}}, {"b": {"$eq": "x"}}]
        }
