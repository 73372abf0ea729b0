"""Configuration management for embedding-builder."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
from typing import Dict, List, Optional

from ..core.errors import ConfigError

VALID_METRICS = ("cosine", "dot", "euclid", "manhattan")
VALID_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

DEFAULT_CONFIG: Dict = {
    "log_level": "INFO",
    "temp_dir": "./work",
    "max_concurrent_jobs": 2,
    "database": {
        "url": "sqlite:///./embedding_builder.db",
    },
    "chunking": {
        "chunk_size": 500,
    },
    "pipeline": {
        "batch_size": 50,
        "initial_progress": 10,
        "chunking_progress": 30,
        "embedding_progress": 90,
        "include_content": True,
    },
    "embedding": {
        "backend": "openai",
        "model": "text-embedding-3-small",
        "api_key": None,
        "dimensions": None,
    },
    "vector_store": {
        "backend": "qdrant",
        "collection_name": "code-embeddings",
        "dimension": 1536,
        "metric": "cosine",
        "batch_size": 40,
        "poll_interval": 5.0,
        "max_poll_attempts": 12,
        "qdrant": {
            "location": None,
            "url": None,
            "host": "localhost",
            "port": 6333,
            "api_key": None,
        },
    },
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def load_config() -> Dict:
    """Load configuration.

    Returns a copy of the defaults overridden from the environment.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config["log_level"] = os.getenv("LOG_LEVEL", config["log_level"]).upper()
    config["temp_dir"] = os.getenv("TEMP_DIR", config["temp_dir"])
    config["max_concurrent_jobs"] = _env_int("MAX_JOBS_CONCURRENCY", config["max_concurrent_jobs"])
    config["database"]["url"] = os.getenv("DATABASE_URL", config["database"]["url"])

    emb = config["embedding"]
    emb["api_key"] = os.getenv("OPENAI_API_KEY", emb["api_key"])
    emb["model"] = os.getenv("EMBEDDING_MODEL", emb["model"])

    vs = config["vector_store"]
    vs["collection_name"] = os.getenv("QDRANT_COLLECTION", vs["collection_name"])
    vs["dimension"] = _env_int("EMBEDDING_DIMENSION", vs["dimension"])
    vs["metric"] = os.getenv("VECTOR_METRIC", vs["metric"]).lower()

    qdrant = vs["qdrant"]
    qdrant["location"] = os.getenv("QDRANT_LOCATION", qdrant["location"])
    qdrant["url"] = os.getenv("QDRANT_URL", qdrant["url"])
    qdrant["host"] = os.getenv("QDRANT_HOST", qdrant["host"])
    qdrant["port"] = _env_int("QDRANT_PORT", qdrant["port"])
    qdrant["api_key"] = os.getenv("QDRANT_API_KEY", qdrant["api_key"])

    return config


def config_problems(cfg: Dict) -> List[str]:
    """Return a human readable list of everything wrong with *cfg*."""
    problems: List[str] = []

    if str(cfg.get("log_level", "")).upper() not in VALID_LOG_LEVELS:
        problems.append(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

    emb = cfg.get("embedding", {})
    if emb.get("backend") == "openai" and not emb.get("api_key"):
        problems.append("OPENAI_API_KEY is required")

    vs = cfg.get("vector_store", {})
    if vs.get("metric") not in VALID_METRICS:
        problems.append(f"vector_store.metric must be one of {', '.join(VALID_METRICS)}")

    sizes = {
        "max_concurrent_jobs": cfg.get("max_concurrent_jobs"),
        "chunking.chunk_size": cfg.get("chunking", {}).get("chunk_size"),
        "pipeline.batch_size": cfg.get("pipeline", {}).get("batch_size"),
        "vector_store.dimension": vs.get("dimension"),
        "vector_store.batch_size": vs.get("batch_size"),
        "vector_store.max_poll_attempts": vs.get("max_poll_attempts"),
    }
    for key, value in sizes.items():
        if not isinstance(value, int) or value < 1:
            problems.append(f"{key} must be a positive integer")

    pipe = cfg.get("pipeline", {})
    checkpoints = [
        pipe.get("initial_progress"),
        pipe.get("chunking_progress"),
        pipe.get("embedding_progress"),
    ]
    if not all(isinstance(c, int) for c in checkpoints) or not (
        0 <= checkpoints[0] < checkpoints[1] < checkpoints[2] < 100
    ):
        problems.append(
            "pipeline progress checkpoints must satisfy 0 <= initial < chunking < embedding < 100"
        )

    return problems


def validate_config(cfg: Dict) -> None:
    """Raise ConfigError listing every problem found in *cfg*."""
    problems = config_problems(cfg)
    if problems:
        for p in problems:
            logging.getLogger(__name__).error(f"Configuration error: {p}")
        raise ConfigError("Invalid configuration: " + "; ".join(problems))


def cfg_fingerprint(cfg: Dict, secret_keys: Optional[List[str]] = None) -> str:
    """Generate fingerprint hash for config, ignoring secrets."""
    secret_keys = secret_keys or ["api_key"]

    def _strip(node):
        if isinstance(node, dict):
            return {k: _strip(v) for k, v in node.items() if k not in secret_keys}
        return node

    payload = json.dumps(_strip(cfg), sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
