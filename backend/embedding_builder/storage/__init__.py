"""Vector storage backends (Qdrant only)."""

from .base import VectorStore, namespace_for
from .qdrant import IndexState, QdrantVectorStore, make_vector_store

__all__ = [
    "VectorStore",
    "namespace_for",
    "IndexState",
    "QdrantVectorStore",
    "make_vector_store",
]
