"""Integration tests for the FastAPI endpoints using TestClient.

The app is built with :func:`ragline.main.create_app` against a temporary
SQLite Catalog, the in-memory vector store and a deterministic hash
embedder, so uploads run through the real ingestion pipeline.
"""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from ragline.config.settings import Settings
from ragline.main import create_app
from tests.conftest import EMBEDDING_DIM, HashEmbeddingProvider

_API = "/api/v1"

_HANDBOOK = (
    "Annual leave is twenty five days per year.\n\n"
    "Remote work requires written approval from a manager.\n\n"
    "Expenses are reimbursed at the end of every month."
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def client(tmp_path):
    app_settings = Settings(
        catalog_db_path=str(tmp_path / "catalog.db"),
        ingestion_concurrency=2,
        max_upload_bytes=10_000,
    )
    application = create_app(
        app_settings,
        embedding_provider_factory=lambda model: HashEmbeddingProvider(model=model),
    )
    with TestClient(application) as test_client:
        yield test_client


def _create_store(client: TestClient, name: str = "memory") -> dict:
    response = client.post(
        f"{_API}/vector-stores",
        json={"name": name, "type": "memory", "connection_string": "api-tests"},
    )
    assert response.status_code == 201
    return response.json()


def _create_collection(client: TestClient, store_id: int, name: str = "handbook") -> dict:
    response = client.post(
        f"{_API}/collections",
        json={
            "vector_store_id": store_id,
            "name": name,
            "embedding_model": "hash-embedding",
            "embedding_dimensions": EMBEDDING_DIM,
        },
    )
    assert response.status_code == 201
    return response.json()


def _upload(client: TestClient, collection_id: int, files: list[tuple[str, bytes]], **form) -> dict:
    response = client.post(
        f"{_API}/documents",
        data={"collection_id": str(collection_id), **form},
        files=[("files", (name, data, "text/plain")) for name, data in files],
    )
    assert response.status_code == 202
    return response.json()


def _wait_for(client: TestClient, document_id: int, timeout: float = 10.0) -> dict:
    """Poll a document until it leaves pending/processing."""
    deadline = time.monotonic() + timeout
    while True:
        document = client.get(f"{_API}/documents/{document_id}").json()
        if document["processing_status"] in ("completed", "failed"):
            return document
        if time.monotonic() > deadline:
            raise AssertionError(f"document {document_id} still {document['processing_status']}")
        time.sleep(0.05)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client) -> None:
        response = client.get(f"{_API}/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["pending_jobs"] == 0


# ---------------------------------------------------------------------------
# Vector stores and collections
# ---------------------------------------------------------------------------


class TestVectorStores:
    def test_crud(self, client) -> None:
        store = _create_store(client)

        assert client.get(f"{_API}/vector-stores").json()[0]["name"] == "memory"
        updated = client.put(f"{_API}/vector-stores/{store['id']}", json={"is_default": True})
        assert updated.json()["is_default"] is True
        assert client.delete(f"{_API}/vector-stores/{store['id']}").json() == {
            "id": store["id"],
            "deleted": True,
        }
        assert client.get(f"{_API}/vector-stores/{store['id']}").status_code == 404

    def test_duplicate_name_conflicts(self, client) -> None:
        _create_store(client)
        response = client.post(
            f"{_API}/vector-stores", json={"name": "memory", "type": "memory"}
        )
        assert response.status_code == 409

    def test_unsupported_type_rejected(self, client) -> None:
        response = client.post(f"{_API}/vector-stores", json={"name": "pg", "type": "pgvector"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["code"] == "validation_error"
        assert "body.type" in body["detail"]

    def test_connection_test_lists_collections(self, client) -> None:
        store = _create_store(client)
        _create_collection(client, store["id"])

        response = client.post(
            f"{_API}/vector-stores/test",
            json={"name": "probe", "type": "memory", "connection_string": "api-tests"},
        )

        body = response.json()
        assert body["ok"] is True
        assert [c["name"] for c in body["collections"]] == ["handbook"]

    def test_sync_endpoints(self, client) -> None:
        store = _create_store(client)
        _create_collection(client, store["id"])

        check = client.get(f"{_API}/vector-stores/{store['id']}/sync")
        apply = client.post(f"{_API}/vector-stores/{store['id']}/sync")

        assert check.json()["is_synced"] is True
        assert apply.json()["summary"]["db_collections"] == 1


class TestCollections:
    def test_create_and_get_detail(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        detail = client.get(f"{_API}/collections/{collection['id']}").json()

        assert detail["vector_store_name"] == "memory"
        assert detail["document_count"] == 0
        assert detail["stats"]["dimensions"] == EMBEDDING_DIM

    def test_list_filtered_by_store(self, client) -> None:
        store = _create_store(client)
        _create_collection(client, store["id"])

        listed = client.get(f"{_API}/collections", params={"vector_store_id": store["id"]})

        assert [c["name"] for c in listed.json()] == ["handbook"]

    def test_update_rejects_dimension_change(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        response = client.put(
            f"{_API}/collections/{collection['id']}", json={"embedding_dimensions": 64}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_bad_name_gets_validation_envelope(self, client) -> None:
        store = _create_store(client)

        response = client.post(
            f"{_API}/collections",
            json={"vector_store_id": store["id"], "name": "has space", "embedding_dimensions": 8},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["code"] == "validation_error"
        assert "body.name" in body["detail"]

    def test_unknown_store_has_error_body(self, client) -> None:
        response = client.post(
            f"{_API}/collections",
            json={"vector_store_id": 99, "name": "x", "embedding_dimensions": 8},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "NotFoundError"
        assert body["code"] == "not_found"
        assert "#99" in body["detail"]

    def test_delete_with_documents_conflicts(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        result = _upload(client, collection["id"], [("a.txt", b"hello there")])
        _wait_for(client, result["results"][0]["document_id"])

        response = client.delete(f"{_API}/collections/{collection['id']}")

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_delete_empty_collection(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        assert client.delete(f"{_API}/collections/{collection['id']}").status_code == 200
        assert client.get(f"{_API}/collections/{collection['id']}").status_code == 404

    def test_copy_collection_with_documents(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        body = _upload(client, collection["id"], [("handbook.txt", _HANDBOOK.encode())])
        _wait_for(client, body["results"][0]["document_id"])

        response = client.post(
            f"{_API}/collections/{collection['id']}/copy", json={"name": "handbook_v2"}
        )

        assert response.status_code == 201
        copy = response.json()
        assert copy["collection"]["name"] == "handbook_v2"
        assert copy["collection"]["description"] == "Copied from handbook"
        assert copy["stats"]["documents_copied"] == 1
        assert copy["stats"]["vectors_copied"] >= 1
        [document] = client.get(f"{_API}/collections/{copy['collection']['id']}/documents").json()
        assert document["processing_status"] == "completed"

    def test_copy_to_taken_name_conflicts(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        response = client.post(
            f"{_API}/collections/{collection['id']}/copy", json={"name": "handbook"}
        )

        assert response.status_code == 409


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_upload_processes_in_background(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        body = _upload(client, collection["id"], [("handbook.txt", _HANDBOOK.encode())])

        assert body["collection_id"] == collection["id"]
        [result] = body["results"]
        assert result["status"] == "pending"
        document = _wait_for(client, result["document_id"])
        assert document["processing_status"] == "completed"
        assert document["content_type"] == "txt"
        assert len(document["chunks"]) == document["metadata"]["chunkCount"]

        listed = client.get(f"{_API}/collections/{collection['id']}/documents").json()
        assert [d["filename"] for d in listed] == ["handbook.txt"]
        assert "raw_content" not in listed[0]

    def test_per_file_failures_reported(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        body = _upload(
            client,
            collection["id"],
            [("empty.txt", b""), ("big.txt", b"x" * 20_000), ("ok.txt", b"fine text")],
        )

        statuses = [(r["filename"], r["status"]) for r in body["results"]]
        assert statuses == [
            ("empty.txt", "failed"),
            ("big.txt", "failed"),
            ("ok.txt", "pending"),
        ]
        assert _wait_for(client, body["results"][2]["document_id"])["processing_status"] == "completed"

    def test_chunking_override_in_form(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        strategy = client.post(
            f"{_API}/chunking-strategies",
            json={"name": "paragraphs", "type": "paragraph", "chunk_size": 60, "chunk_overlap": 0},
        ).json()

        body = _upload(
            client,
            collection["id"],
            [("handbook.txt", _HANDBOOK.encode())],
            chunking_strategy_id=str(strategy["id"]),
            cleansing_config_id="none",
        )

        document = _wait_for(client, body["results"][0]["document_id"])
        assert len(document["chunks"]) == 3
        assert document["metadata"]["processingConfig"]["chunkingType"] == "paragraph"

    def test_bad_override_rejected(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])

        response = client.post(
            f"{_API}/documents",
            data={"collection_id": str(collection["id"]), "chunking_strategy_id": "latest"},
            files=[("files", ("a.txt", b"text", "text/plain"))],
        )

        assert response.status_code == 400

    def test_reprocess_and_delete(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        body = _upload(client, collection["id"], [("handbook.txt", _HANDBOOK.encode())])
        document_id = body["results"][0]["document_id"]
        _wait_for(client, document_id)
        strategy = client.post(
            f"{_API}/chunking-strategies",
            json={"name": "tiny", "type": "fixed_size", "chunk_size": 40, "chunk_overlap": 0},
        ).json()

        response = client.post(
            f"{_API}/documents/{document_id}/reprocess",
            json={"chunking_strategy_id": strategy["id"], "cleansing_config_id": None},
        )

        assert response.status_code == 202
        assert response.json()["processing_status"] == "processing"
        document = _wait_for(client, document_id)
        assert len(document["chunks"]) == -(-len(_HANDBOOK) // 40)

        assert client.delete(f"{_API}/documents/{document_id}").status_code == 200
        assert client.get(f"{_API}/documents/{document_id}").status_code == 404

    def test_regenerate_into_other_collection(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        archive = _create_collection(client, store["id"], name="archive")
        body = _upload(client, collection["id"], [("handbook.txt", _HANDBOOK.encode())])
        document_id = body["results"][0]["document_id"]
        _wait_for(client, document_id)

        response = client.post(
            f"{_API}/documents/{document_id}/regenerate",
            json={"collection_id": archive["id"], "delete_original": True},
        )

        assert response.status_code == 202
        regenerated = response.json()
        assert regenerated["filename"] == "regenerated_handbook.txt"
        assert "raw_content" not in regenerated
        assert _wait_for(client, regenerated["id"])["processing_status"] == "completed"
        assert client.get(f"{_API}/documents/{document_id}").status_code == 404

    def test_regenerate_bad_override_is_validation_error(self, client) -> None:
        response = client.post(
            f"{_API}/documents/1/regenerate",
            json={"collection_id": 1, "chunking_strategy_id": "latest"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_unknown_document(self, client) -> None:
        assert client.get(f"{_API}/documents/12345").status_code == 404


# ---------------------------------------------------------------------------
# Search / rerank
# ---------------------------------------------------------------------------


class TestSearch:
    def test_search_returns_enriched_hits(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        strategy = client.post(
            f"{_API}/chunking-strategies",
            json={"name": "paragraphs", "type": "paragraph", "chunk_size": 60, "chunk_overlap": 0},
        ).json()
        body = _upload(
            client,
            collection["id"],
            [("handbook.txt", _HANDBOOK.encode())],
            chunking_strategy_id=str(strategy["id"]),
            cleansing_config_id="none",
        )
        _wait_for(client, body["results"][0]["document_id"])

        response = client.post(
            f"{_API}/search",
            json={
                "collection_id": collection["id"],
                "query": "Remote work requires written approval from a manager.",
                "top_k": 2,
            },
        )

        assert response.status_code == 200
        result = response.json()
        assert result["total"] == 2
        best = result["results"][0]
        assert best["content"].startswith("Remote work")
        assert best["metadata"]["filename"] == "handbook.txt"
        assert best["metadata"]["documentTitle"] == "handbook"

    def test_search_unknown_collection(self, client) -> None:
        response = client.post(f"{_API}/search", json={"collection_id": 5, "query": "x"})
        assert response.status_code == 404

    def test_rerank_rule_based(self, client) -> None:
        strategy = client.post(
            f"{_API}/reranking-strategies",
            json={"name": "keywords", "type": "rule_based"},
        ).json()

        response = client.post(
            f"{_API}/rerank",
            json={
                "query": "leave policy",
                "candidates": [
                    {"id": "a", "content": "Expenses are monthly.", "score": 0.5},
                    {"id": "b", "content": "The leave policy is generous.", "score": 0.5},
                ],
                "reranking_strategy_id": strategy["id"],
            },
        )

        results = response.json()["results"]
        assert [r["id"] for r in results] == ["b", "a"]
        assert results[0]["original_score"] == 0.5


# ---------------------------------------------------------------------------
# Strategy CRUD
# ---------------------------------------------------------------------------


class TestStrategies:
    def test_chunking_strategy_crud(self, client) -> None:
        created = client.post(f"{_API}/chunking-strategies", json={"name": "default-ish"})
        assert created.status_code == 201
        strategy_id = created.json()["id"]

        updated = client.put(
            f"{_API}/chunking-strategies/{strategy_id}", json={"chunk_size": 500}
        )
        assert updated.json()["chunk_size"] == 500
        assert client.delete(f"{_API}/chunking-strategies/{strategy_id}").status_code == 200
        assert client.get(f"{_API}/chunking-strategies/{strategy_id}").status_code == 404

    def test_invalid_chunking_parameters(self, client) -> None:
        response = client.post(
            f"{_API}/chunking-strategies",
            json={"name": "bad", "chunk_size": 100, "chunk_overlap": 100},
        )
        assert response.status_code == 400

    def test_cleansing_config_with_bad_regex(self, client) -> None:
        response = client.post(
            f"{_API}/cleansing-configs",
            json={"name": "bad", "custom_rules": [{"pattern": "(unclosed"}]},
        )
        assert response.status_code == 400
        assert "Invalid regex" in response.json()["detail"]

    def test_null_for_required_column_is_validation_error(self, client) -> None:
        strategy = client.post(f"{_API}/chunking-strategies", json={"name": "s"}).json()

        response = client.put(
            f"{_API}/chunking-strategies/{strategy['id']}", json={"chunk_size": None}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"
        assert client.get(f"{_API}/chunking-strategies/{strategy['id']}").json()["chunk_size"] == 1000

    def test_referenced_strategy_cannot_be_deleted(self, client) -> None:
        store = _create_store(client)
        collection = _create_collection(client, store["id"])
        strategy = client.post(
            f"{_API}/reranking-strategies", json={"name": "top3", "top_k": 3}
        ).json()
        client.put(
            f"{_API}/collections/{collection['id']}",
            json={"default_reranking_strategy_id": strategy["id"]},
        )

        response = client.delete(f"{_API}/reranking-strategies/{strategy['id']}")

        assert response.status_code == 409
        assert "handbook" in response.json()["detail"]
