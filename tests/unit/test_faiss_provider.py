"""Unit tests for the disk-backed FaissVectorStoreProvider."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from ragline.models.catalog import VectorStoreConfigCreate, VectorStoreType
from ragline.models.rag import VectorDocument
from ragline.providers.vector_store.factory import create_vector_store
from ragline.providers.vector_store.faiss_provider import FaissVectorStoreProvider
from ragline.utils.errors import NotFoundError, ValidationError, VectorStoreError


def _doc(doc_id: str, vector: list[float], **metadata) -> VectorDocument:
    return VectorDocument(id=doc_id, content=f"content of {doc_id}", embedding=vector, metadata=metadata)


@pytest.fixture
def index_dir(tmp_path):
    yield str(tmp_path / "faiss")
    FaissVectorStoreProvider.reset()


@pytest_asyncio.fixture
async def store(index_dir):
    async with FaissVectorStoreProvider(index_dir) as provider:
        await provider.create_collection("kb", 3, metadata={"description": "Knowledge base"})
        yield provider


class TestCollections:
    @pytest.mark.asyncio
    async def test_create_writes_files(self, store, index_dir) -> None:
        assert sorted(p.name for p in Path(index_dir).iterdir()) == ["kb.faiss", "kb.json"]
        info = await store.get_collection("kb")
        assert info.description == "Knowledge base"
        assert info.metadata == {"dimensions": 3}

    @pytest.mark.asyncio
    async def test_recreate_with_other_dimensions_rejected(self, store) -> None:
        await store.create_collection("kb", 3)
        with pytest.raises(ValidationError):
            await store.create_collection("kb", 4)

    @pytest.mark.asyncio
    async def test_delete_removes_files(self, store, index_dir) -> None:
        await store.delete_collection("kb")
        await store.delete_collection("kb")

        assert await store.list_collections() == []
        assert list(Path(index_dir).iterdir()) == []

    @pytest.mark.asyncio
    async def test_disconnected_use_raises(self, index_dir) -> None:
        with pytest.raises(VectorStoreError):
            await FaissVectorStoreProvider(index_dir).list_collections()

    @pytest.mark.asyncio
    async def test_missing_collection_raises_not_found(self, store) -> None:
        with pytest.raises(NotFoundError):
            await store.get_collection_stats("missing")


class TestDocuments:
    @pytest.mark.asyncio
    async def test_search_orders_by_cosine_similarity(self, store) -> None:
        await store.add_documents(
            "kb",
            [
                _doc("1_0", [1.0, 0.0, 0.0]),
                _doc("1_1", [0.7, 0.7, 0.0]),
                _doc("2_0", [0.0, 0.0, 5.0]),
            ],
        )

        hits = await store.search("kb", [2.0, 0.0, 0.0], k=2)

        assert [h.id for h in hits] == ["1_0", "1_1"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].content == "content of 1_0"

    @pytest.mark.asyncio
    async def test_search_filter_applies_to_all_entries(self, store) -> None:
        await store.add_documents(
            "kb",
            [
                _doc("1_0", [1.0, 0.0, 0.0], documentId=1),
                _doc("1_1", [0.9, 0.1, 0.0], documentId=1),
                _doc("2_0", [0.0, 1.0, 0.0], documentId=2),
            ],
        )

        hits = await store.search("kb", [1.0, 0.0, 0.0], k=5, filter={"documentId": 2})

        assert [h.id for h in hits] == ["2_0"]

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, store) -> None:
        await store.add_documents("kb", [_doc("1_0", [1.0, 0.0, 0.0])])
        await store.update_documents("kb", [_doc("1_0", [0.0, 3.0, 0.0], version=2)])

        stored = await store.get_document("kb", "1_0")
        assert stored.embedding == pytest.approx([0.0, 1.0, 0.0])
        assert stored.metadata == {"version": 2}
        assert (await store.get_collection_stats("kb")).document_count == 1
        assert [h.id for h in await store.search("kb", [1.0, 0.0, 0.0], k=5)] == ["1_0"]

    @pytest.mark.asyncio
    async def test_delete_by_filter(self, store) -> None:
        await store.add_documents(
            "kb",
            [
                _doc("1_0", [1.0, 0.0, 0.0], documentId=1),
                _doc("1_7", [0.0, 1.0, 0.0], documentId=1),
                _doc("2_0", [0.0, 0.0, 1.0], documentId=2),
            ],
        )

        await store.delete_by_filter("kb", {"documentId": 1})

        assert await store.get_document("kb", "1_7") is None
        hits = await store.search("kb", [1.0, 0.0, 0.0], k=5)
        assert [h.id for h in hits] == ["2_0"]

    @pytest.mark.asyncio
    async def test_empty_filter_rejected(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.delete_by_filter("kb", {})

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.add_documents("kb", [_doc("1_0", [1.0, 0.0])])

    @pytest.mark.asyncio
    async def test_wrong_query_length_rejected(self, store) -> None:
        await store.add_documents("kb", [_doc("1_0", [1.0, 0.0, 0.0])])
        with pytest.raises(ValidationError, match="Query vector has 2 dimensions"):
            await store.search("kb", [1.0, 0.0], k=1)

    @pytest.mark.asyncio
    async def test_empty_collection_search_returns_nothing(self, store) -> None:
        assert await store.search("kb", [1.0, 0.0, 0.0], k=3) == []


class TestPersistence:
    @pytest.mark.asyncio
    async def test_reload_from_disk(self, store, index_dir) -> None:
        await store.add_documents(
            "kb",
            [_doc("1_0", [1.0, 0.0, 0.0], documentId=1), _doc("2_0", [0.0, 1.0, 0.0], documentId=2)],
        )
        await store.delete_documents("kb", ["2_0"])
        await store.add_documents("kb", [_doc("3_0", [0.0, 0.0, 1.0], documentId=3)])

        FaissVectorStoreProvider.reset()
        async with FaissVectorStoreProvider(index_dir) as reopened:
            stats = await reopened.get_collection_stats("kb")
            hits = await reopened.search("kb", [0.0, 0.0, 1.0], k=5)
            info = await reopened.get_collection("kb")

        assert stats.document_count == 2
        assert stats.index_type == "faiss:IndexFlatIP"
        assert [h.id for h in hits] == ["3_0", "1_0"]
        assert hits[0].metadata == {"documentId": 3}
        assert info.description == "Knowledge base"

    @pytest.mark.asyncio
    async def test_corrupt_state_file_raises_store_error(self, index_dir) -> None:
        Path(index_dir).mkdir(parents=True)
        (Path(index_dir) / "kb.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(VectorStoreError):
            async with FaissVectorStoreProvider(index_dir):
                pass


class TestFactory:
    def test_builds_faiss_provider(self, index_dir) -> None:
        config = VectorStoreConfigCreate(
            name="local-faiss", type=VectorStoreType.FAISS, connection_string=index_dir
        )
        assert isinstance(create_vector_store(config), FaissVectorStoreProvider)
