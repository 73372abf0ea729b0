"""Tests for the Qdrant vector store adapter."""

from __future__ import annotations

import logging
import threading
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import CollectionStatus, Distance, VectorParams

from conftest import DIMENSION, FakeEmbedder
from embedding_builder.core.errors import (
    IndexConfigMismatchError,
    IndexProvisioningError,
    VectorUpsertError,
)
from embedding_builder.core.models import VectorRecord
from embedding_builder.storage import qdrant as qdrant_module
from embedding_builder.storage.base import MAX_TOP_K, namespace_for
from embedding_builder.storage.qdrant import (
    IndexState,
    QdrantVectorStore,
    group_by_tenant,
    make_vector_store,
    namespace_filter,
)

COLLECTION = "test-embeddings"


def _record(tenant_id, content, embedder, **metadata):
    meta = {"tenant_id": tenant_id, "content": content, "file_path": "a.py", **metadata}
    return VectorRecord(id=str(uuid.uuid4()), values=embedder.embed_one(content), metadata=meta)


def _not_found():
    return UnexpectedResponse(404, "Not Found", b"", httpx.Headers())


def _mock_client(existing=()):
    client = MagicMock()
    client.get_collections.return_value = SimpleNamespace(
        collections=[SimpleNamespace(name=n) for n in existing]
    )
    return client


def _store(client, **kwargs):
    kwargs.setdefault("dimension", DIMENSION)
    kwargs.setdefault("poll_interval", 0)
    return QdrantVectorStore(client=client, collection_name=COLLECTION, **kwargs)


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(qdrant_module.time, "sleep", lambda s: calls.append(s))
    return calls


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def test_namespace_for():
    assert namespace_for("42") == "user_42"


def test_group_by_tenant_keeps_first_seen_order(embedder):
    records = [_record(t, c, embedder) for t, c in [("b", "1"), ("a", "2"), ("b", "3")]]

    groups = group_by_tenant(records)

    assert list(groups) == ["b", "a"]
    assert [r.metadata["content"] for r in groups["b"]] == ["1", "3"]


def test_namespace_filter_plain_mapping():
    flt = namespace_filter("user_1", {"file_path": "a.py", "chunk_index": [0, 1]})

    assert len(flt.must) == 3
    assert flt.must[0].key == "namespace"
    assert flt.must[0].match.value == "user_1"
    assert flt.must[2].match.any == [0, 1]


def test_namespace_filter_filter_document_is_nested():
    flt = namespace_filter(
        "user_1", {"must_not": [{"key": "file_path", "match": {"value": "b.py"}}]}
    )

    assert len(flt.must) == 2
    assert flt.must[1].must_not[0].key == "file_path"


# ------------------------------------------------------------------
# Provisioning
# ------------------------------------------------------------------


def test_init_creates_collection_and_is_idempotent(embedder):
    client = MagicMock(wraps=QdrantClient(location=":memory:"))
    store = _store(client, embedder=embedder)

    store.init()
    store.init()

    assert store.state is IndexState.READY
    client.create_collection.assert_called_once()
    client.get_collections.assert_called_once()
    params = client.get_collection(collection_name=COLLECTION).config.params.vectors
    assert params.size == DIMENSION
    assert params.distance == Distance.COSINE


def test_concurrent_init_provisions_once():
    client = MagicMock(wraps=QdrantClient(location=":memory:"))
    store = _store(client)
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        store.init()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.is_ready
    client.get_collections.assert_called_once()
    client.create_collection.assert_called_once()


def test_init_waits_through_not_ready_status(sleeps):
    client = _mock_client()
    client.get_collection.side_effect = [
        _not_found(),
        SimpleNamespace(status=CollectionStatus.YELLOW),
        SimpleNamespace(status=CollectionStatus.GREEN),
    ]
    store = _store(client)

    store.init()

    assert store.is_ready
    assert len(sleeps) == 2
    client.create_payload_index.assert_called_once()


def test_init_warns_on_unexpected_describe_error(sleeps, caplog):
    client = _mock_client()
    client.get_collection.side_effect = [
        UnexpectedResponse(500, "Internal Server Error", b"", httpx.Headers()),
        SimpleNamespace(status=CollectionStatus.GREEN),
    ]
    store = _store(client)

    with caplog.at_level(logging.WARNING):
        store.init()

    assert store.is_ready
    assert "while waiting, retrying" in caplog.text


def test_init_not_found_is_not_warned(sleeps, caplog):
    client = _mock_client()
    client.get_collection.side_effect = [
        _not_found(),
        SimpleNamespace(status=CollectionStatus.GREEN),
    ]

    with caplog.at_level(logging.WARNING):
        _store(client).init()

    assert "retrying" not in caplog.text


def test_init_gives_up_after_max_attempts(sleeps):
    client = _mock_client()
    client.get_collection.side_effect = _not_found()
    store = _store(client, poll_interval=5.0)

    with pytest.raises(IndexProvisioningError, match="12 attempts"):
        store.init()

    assert store.state is IndexState.FAILED
    assert client.get_collection.call_count == 12
    assert sleeps == [5.0] * 12

    with pytest.raises(IndexProvisioningError):
        store.upsert([_record("t1", "x", FakeEmbedder())])
    client.upsert.assert_not_called()


def test_init_retries_after_failure(sleeps):
    client = _mock_client()
    client.get_collections.side_effect = [ConnectionError("refused"), client.get_collections.return_value]
    client.get_collection.return_value = SimpleNamespace(status=CollectionStatus.GREEN)
    store = _store(client)

    with pytest.raises(ConnectionError):
        store.init()
    store.init()

    assert store.is_ready


def test_existing_collection_with_other_dimension_is_rejected():
    client = QdrantClient(location=":memory:")
    client.create_collection(
        collection_name=COLLECTION,
        vectors_config=VectorParams(size=DIMENSION * 2, distance=Distance.COSINE),
    )
    store = _store(client)

    with pytest.raises(IndexConfigMismatchError, match="dimension 8"):
        store.init()
    assert store.state is IndexState.FAILED


def test_existing_collection_with_other_metric_warns(caplog):
    client = QdrantClient(location=":memory:")
    client.create_collection(
        collection_name=COLLECTION,
        vectors_config=VectorParams(size=DIMENSION, distance=Distance.DOT),
    )
    store = _store(client)

    with caplog.at_level(logging.WARNING):
        store.init()

    assert store.is_ready
    assert "Ensure this is intended" in caplog.text


def test_unknown_metric_is_rejected():
    with pytest.raises(ValueError, match="Unknown metric"):
        _store(MagicMock(), metric="hamming")


# ------------------------------------------------------------------
# Writes
# ------------------------------------------------------------------


def test_upsert_empty_is_a_no_op():
    client = MagicMock()
    store = _store(client)

    store.upsert([])

    assert client.method_calls == []
    assert store.state is IndexState.UNINITIALIZED


def test_upsert_splits_into_batches(embedder):
    client = MagicMock(wraps=QdrantClient(location=":memory:"))
    store = _store(client, embedder=embedder, batch_size=40)

    store.upsert([_record("t1", f"chunk {i}", embedder) for i in range(95)])

    sizes = [len(c.kwargs["points"]) for c in client.upsert.call_args_list]
    assert sizes == [40, 40, 15]
    assert all(c.kwargs["wait"] is True for c in client.upsert.call_args_list)
    assert store.count("t1") == 95


def test_upsert_routes_each_tenant_to_its_namespace(memory_store, embedder):
    records = [_record("alice", "a1", embedder), _record("bob", "b1", embedder), _record("alice", "a2", embedder)]

    memory_store.upsert(records)

    assert memory_store.count("alice") == 2
    assert memory_store.count("bob") == 1
    assert memory_store.count("carol") == 0


def test_upsert_normalises_missing_revision(memory_store, embedder):
    memory_store.upsert([_record("t1", "x", embedder, revision=None)])

    points, _ = memory_store.client.scroll(collection_name=COLLECTION, with_payload=True)

    assert points[0].payload["revision"] == ""
    assert points[0].payload["namespace"] == "user_t1"


def test_upsert_rejects_missing_tenant(memory_store, embedder):
    record = _record("t1", "x", embedder)
    del record.metadata["tenant_id"]

    with pytest.raises(VectorUpsertError, match="no tenant_id"):
        memory_store.upsert([record])


def test_upsert_rejects_wrong_dimension():
    client = MagicMock()
    store = _store(client)
    record = VectorRecord(id=str(uuid.uuid4()), values=[0.1, 0.2], metadata={"tenant_id": "t1"})

    with pytest.raises(VectorUpsertError, match="dimension 2"):
        store.upsert([record])
    client.upsert.assert_not_called()


def test_upsert_failure_aborts_remaining_batches(embedder):
    client = _mock_client(existing=[COLLECTION])
    client.get_collection.return_value.config.params.vectors = VectorParams(
        size=DIMENSION, distance=Distance.COSINE
    )
    client.upsert.side_effect = [None, RuntimeError("connection reset"), None]
    store = _store(client, batch_size=2)

    with pytest.raises(VectorUpsertError, match="batch 2/3") as exc_info:
        store.upsert([_record("t1", f"c{i}", embedder) for i in range(5)])

    assert client.upsert.call_count == 2
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_delete_all_for_tenant_leaves_others(memory_store, embedder):
    memory_store.upsert([_record("alice", "a", embedder), _record("bob", "b", embedder)])

    memory_store.delete_all_for_tenant("alice")

    assert memory_store.count("alice") == 0
    assert memory_store.count("bob") == 1


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------


def test_search_is_scoped_to_tenant(memory_store, embedder):
    memory_store.upsert(
        [_record("alice", "def parse(): pass", embedder), _record("bob", "def parse(): pass", embedder)]
    )

    matches = memory_store.search("alice", "def parse(): pass", top_k=10)

    assert len(matches) == 1
    assert matches[0].metadata["tenant_id"] == "alice"
    assert "namespace" not in matches[0].metadata
    assert matches[0].values is None
    assert matches[0].score == pytest.approx(1.0, abs=1e-4)


def test_search_with_values_and_without_metadata(memory_store, embedder):
    memory_store.upsert([_record("alice", "x", embedder)])

    [match] = memory_store.search("alice", "x", include_metadata=False, include_values=True)

    assert match.metadata is None
    assert len(match.values) == DIMENSION


def test_search_applies_extra_filter(memory_store, embedder):
    memory_store.upsert(
        [
            _record("alice", "one", embedder, file_path="a.py"),
            _record("alice", "two", embedder, file_path="b.py"),
        ]
    )

    matches = memory_store.search("alice", "one", filter={"file_path": "b.py"})

    assert [m.metadata["file_path"] for m in matches] == ["b.py"]


@pytest.mark.parametrize("top_k", [0, -1, MAX_TOP_K + 1, True, 2.5])
def test_search_rejects_bad_top_k(memory_store, top_k):
    with pytest.raises(ValueError, match="top_k"):
        memory_store.search("alice", "q", top_k=top_k)


def test_search_requires_embedder():
    store = _store(MagicMock())
    with pytest.raises(RuntimeError, match="embedder"):
        store.search("alice", "q")


# ------------------------------------------------------------------
# Health / factory
# ------------------------------------------------------------------


def test_health_check_ok(memory_store):
    assert memory_store.health_check() is True


def test_health_check_never_raises():
    client = MagicMock()
    client.get_collections.side_effect = ConnectionError("refused")

    assert _store(client).health_check() is False


def test_make_vector_store_in_memory(embedder):
    cfg = {
        "vector_store": {
            "collection_name": "from-config",
            "dimension": 8,
            "metric": "dot",
            "batch_size": 10,
            "qdrant": {"location": ":memory:"},
        }
    }

    store = make_vector_store(cfg, embedder=embedder)

    assert store.collection_name == "from-config"
    assert (store.dimension, store.metric, store.batch_size) == (8, "dot", 10)
    assert store.embedder is embedder
    assert store.state is IndexState.UNINITIALIZED


def _existing_collection_client(payload_schema):
    client = _mock_client(existing=[COLLECTION])
    info = client.get_collection.return_value
    info.config.params.vectors = VectorParams(size=DIMENSION, distance=Distance.COSINE)
    info.payload_schema = payload_schema
    return client


def test_existing_collection_without_namespace_index_gets_one():
    client = _existing_collection_client({})

    _store(client).init()

    client.create_collection.assert_not_called()
    client.create_payload_index.assert_called_once()
    assert client.create_payload_index.call_args.kwargs["field_name"] == "namespace"


def test_existing_collection_with_namespace_index_is_left_alone():
    client = _existing_collection_client({"namespace": SimpleNamespace(data_type="keyword")})

    _store(client).init()

    client.create_payload_index.assert_not_called()
