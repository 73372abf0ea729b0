"""Process-wide service instances used by the routes."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict

from ..config import load_config
from ..core.embeddings import Embedder, make_embedder
from ..indexing import JobRunner, make_pipeline
from ..storage import QdrantVectorStore, make_vector_store
from .ledger import JobLedger


@lru_cache
def get_config() -> Dict:
    return load_config()


@lru_cache
def get_ledger() -> JobLedger:
    return JobLedger.from_url(get_config()["database"]["url"])


@lru_cache
def get_embedder() -> Embedder:
    return make_embedder(get_config())


@lru_cache
def get_vector_store() -> QdrantVectorStore:
    return make_vector_store(get_config(), embedder=get_embedder())


@lru_cache
def get_runner() -> JobRunner:
    cfg = get_config()
    pipeline = make_pipeline(cfg, get_ledger(), get_embedder(), get_vector_store())
    return JobRunner(pipeline, max_workers=cfg["max_concurrent_jobs"])
