"""Unit tests for the numpy-backed InMemoryVectorStoreProvider and the store factory."""

from __future__ import annotations

import pytest
import pytest_asyncio

from ragline.models.catalog import VectorStoreConfigCreate, VectorStoreType
from ragline.models.rag import VectorDocument
from ragline.providers.vector_store.factory import create_vector_store
from ragline.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragline.utils.errors import NotFoundError, ValidationError, VectorStoreError


def _doc(doc_id: str, vector: list[float], **metadata) -> VectorDocument:
    return VectorDocument(id=doc_id, content=f"content of {doc_id}", embedding=vector, metadata=metadata)


@pytest_asyncio.fixture
async def store():
    async with InMemoryVectorStoreProvider("unit") as provider:
        await provider.create_collection("kb", 3, metadata={"description": "Knowledge base"})
        yield provider


class TestCollections:
    @pytest.mark.asyncio
    async def test_create_is_idempotent_for_same_dimensions(self, store) -> None:
        await store.create_collection("kb", 3)
        assert [c.name for c in await store.list_collections()] == ["kb"]

    @pytest.mark.asyncio
    async def test_recreate_with_other_dimensions_rejected(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.create_collection("kb", 4)

    @pytest.mark.asyncio
    async def test_info_exposes_description_and_dimensions(self, store) -> None:
        info = await store.get_collection("kb")
        assert info.description == "Knowledge base"
        assert info.metadata == {"dimensions": 3}
        assert await store.get_collection("missing") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "has space", "semi;colon"])
    async def test_invalid_names_rejected(self, store, name: str) -> None:
        with pytest.raises(ValidationError):
            await store.create_collection(name, 3)

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store) -> None:
        await store.delete_collection("kb")
        await store.delete_collection("kb")
        assert await store.list_collections() == []

    @pytest.mark.asyncio
    async def test_instances_share_data_per_connection_string(self, store) -> None:
        await store.add_documents("kb", [_doc("1_0", [1.0, 0.0, 0.0])])

        async with InMemoryVectorStoreProvider("unit") as other:
            assert (await other.get_collection_stats("kb")).document_count == 1
        async with InMemoryVectorStoreProvider("elsewhere") as isolated:
            assert await isolated.list_collections() == []

    @pytest.mark.asyncio
    async def test_disconnected_use_raises(self) -> None:
        provider = InMemoryVectorStoreProvider("unit")
        with pytest.raises(VectorStoreError):
            await provider.list_collections()


class TestDocuments:
    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, store) -> None:
        await store.add_documents("kb", [_doc("1_0", [1.0, 0.0, 0.0])])
        await store.update_documents("kb", [_doc("1_0", [0.0, 1.0, 0.0], version=2)])

        stored = await store.get_document("kb", "1_0")
        assert stored.embedding == [0.0, 1.0, 0.0]
        assert stored.metadata == {"version": 2}
        assert (await store.get_collection_stats("kb")).document_count == 1

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected_without_partial_write(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.add_documents(
                "kb", [_doc("ok", [1.0, 0.0, 0.0]), _doc("bad", [1.0, 0.0])]
            )
        assert await store.get_document("kb", "ok") is None

    @pytest.mark.asyncio
    async def test_unknown_collection_raises_not_found(self, store) -> None:
        with pytest.raises(NotFoundError):
            await store.add_documents("missing", [_doc("1_0", [1.0, 0.0, 0.0])])

    @pytest.mark.asyncio
    async def test_delete_ignores_unknown_ids(self, store) -> None:
        await store.add_documents("kb", [_doc("1_0", [1.0, 0.0, 0.0])])
        await store.batch_delete_documents("kb", ["1_0", "nope"], batch_size=1)
        assert await store.get_document("kb", "1_0") is None

    @pytest.mark.asyncio
    async def test_delete_by_filter_removes_matching_entries_only(self, store) -> None:
        await store.add_documents(
            "kb",
            [
                _doc("1_0", [1.0, 0.0, 0.0], documentId=1),
                _doc("1_7", [0.0, 1.0, 0.0], documentId=1),
                _doc("2_0", [0.0, 0.0, 1.0], documentId=2),
            ],
        )

        await store.delete_by_filter("kb", {"documentId": 1})

        assert (await store.get_collection_stats("kb")).document_count == 1
        assert await store.get_document("kb", "2_0") is not None

    @pytest.mark.asyncio
    async def test_delete_by_empty_filter_rejected(self, store) -> None:
        await store.add_documents("kb", [_doc("1_0", [1.0, 0.0, 0.0], documentId=1)])

        with pytest.raises(ValidationError):
            await store.delete_by_filter("kb", {})
        assert (await store.get_collection_stats("kb")).document_count == 1


class TestSearch:
    @pytest.mark.asyncio
    async def test_results_ordered_by_cosine_similarity(self, store) -> None:
        await store.batch_add_documents(
            "kb",
            [
                _doc("far", [0.0, 0.0, 1.0]),
                _doc("near", [1.0, 0.1, 0.0]),
                _doc("exact", [2.0, 0.0, 0.0]),
            ],
            batch_size=2,
        )

        hits = await store.search("kb", [1.0, 0.0, 0.0], k=2)

        assert [h.id for h in hits] == ["exact", "near"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].content == "content of exact"

    @pytest.mark.asyncio
    async def test_equality_filter(self, store) -> None:
        await store.add_documents(
            "kb",
            [
                _doc("a", [1.0, 0.0, 0.0], documentId=1),
                _doc("b", [1.0, 0.0, 0.0], documentId=2),
            ],
        )

        hits = await store.search("kb", [1.0, 0.0, 0.0], k=10, filter={"documentId": 2})

        assert [h.id for h in hits] == ["b"]

    @pytest.mark.asyncio
    async def test_empty_collection_returns_nothing(self, store) -> None:
        assert await store.search("kb", [1.0, 0.0, 0.0], k=5) == []

    @pytest.mark.asyncio
    async def test_zero_query_vector_scores_zero(self, store) -> None:
        await store.add_documents("kb", [_doc("a", [1.0, 0.0, 0.0])])
        [hit] = await store.search("kb", [0.0, 0.0, 0.0], k=1)
        assert hit.score == 0.0

    @pytest.mark.asyncio
    async def test_query_of_wrong_length_rejected(self, store) -> None:
        await store.add_documents("kb", [_doc("a", [1.0, 0.0, 0.0])])

        with pytest.raises(ValidationError, match="2 dimensions"):
            await store.search("kb", [1.0, 0.0], k=1)


class TestFactory:
    def test_memory_config_builds_memory_provider(self) -> None:
        config = VectorStoreConfigCreate(
            name="m", type=VectorStoreType.MEMORY, connection_string="ns"
        )
        assert isinstance(create_vector_store(config), InMemoryVectorStoreProvider)

    def test_chromadb_config_builds_chromadb_provider(self, tmp_path) -> None:
        config = VectorStoreConfigCreate(
            name="c", type=VectorStoreType.CHROMADB, connection_string=str(tmp_path)
        )
        assert create_vector_store(config).get_provider_name() == "chromadb"

    def test_unknown_type_rejected(self) -> None:
        config = VectorStoreConfigCreate.model_construct(
            name="x", type="pinecone", connection_string=None, api_key=None, settings={}
        )
        with pytest.raises(ValidationError):
            create_vector_store(config)
