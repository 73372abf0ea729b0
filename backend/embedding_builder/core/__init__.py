"""Core functionality for embedding-builder."""

from .models import Chunk, SearchMatch, VectorRecord
from .chunking import chunk_file, should_include, walk_and_chunk, LineChunker
from .embeddings import Embedder, OpenAIEmbedder, make_embedder

__all__ = [
    "Chunk",
    "SearchMatch",
    "VectorRecord",
    "chunk_file",
    "should_include",
    "walk_and_chunk",
    "LineChunker",
    "Embedder",
    "OpenAIEmbedder",
    "make_embedder",
]
