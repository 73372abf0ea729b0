"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import threading
from typing import List, Optional

import pytest
from qdrant_client import QdrantClient

from embedding_builder.core.embeddings import Embedder
from embedding_builder.core.errors import EmbeddingServiceError
from embedding_builder.storage.qdrant import QdrantVectorStore
from embedding_builder.web.ledger import JobLedger

DIMENSION = 4


class FakeEmbedder(Embedder):
    """Deterministic embedder; fails on any text containing ``fail_on``."""

    def __init__(self, dimension: int = DIMENSION, fail_on: Optional[str] = None):
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def embed(self, texts: List[str]) -> List[List[float]]:
        out = []
        for text in texts:
            with self._lock:
                self.calls.append(text)
            if self.fail_on and self.fail_on in text:
                raise EmbeddingServiceError("rate limited", status_code=429)
            digest = hashlib.sha256(text.encode("utf-8")).digest()
            out.append([b / 255.0 + 0.01 for b in digest[: self.dimension]])
        return out


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def memory_store(embedder):
    """Vector store on an in-process Qdrant, 4-dimensional cosine collection."""
    return QdrantVectorStore(
        client=QdrantClient(location=":memory:"),
        collection_name="test-embeddings",
        dimension=DIMENSION,
        embedder=embedder,
        poll_interval=0,
    )


@pytest.fixture
def ledger(tmp_path):
    """File-based SQLite ledger in tmp_path with tables created."""
    return JobLedger.from_url(f"sqlite:///{tmp_path / 'jobs.db'}")
