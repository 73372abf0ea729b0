"""Embedding job orchestration."""

from .pipeline import EmbeddingPipeline, chunk_to_vector, make_pipeline
from .runner import JobRunner, run_embedding_job

__all__ = [
    "EmbeddingPipeline",
    "chunk_to_vector",
    "make_pipeline",
    "JobRunner",
    "run_embedding_job",
]
