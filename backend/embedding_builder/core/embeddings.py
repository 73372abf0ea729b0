"""Embedding models for semantic search."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import openai

from .errors import ConfigError, EmbeddingServiceError

logger = logging.getLogger(__name__)


class Embedder:
    """Abstract base class for embedding models."""

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts into vectors."""
        raise NotImplementedError

    def embed_one(self, text: str) -> List[float]:
        """Embed a single text into a vector."""
        return self.embed([text])[0]


class OpenAIEmbedder(Embedder):
    """Embedder backed by the OpenAI embeddings API.

    Failures are surfaced as ``EmbeddingServiceError`` and never retried here;
    the SDK's built-in retries are switched off so the caller decides.
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        client: Optional[openai.OpenAI] = None,
        dimensions: Optional[int] = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.client = client or openai.OpenAI(api_key=api_key, max_retries=0)

    def embed(self, texts: List[str]) -> List[List[float]]:
        kwargs = {"model": self.model, "input": list(texts)}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions

        try:
            response = self.client.embeddings.create(**kwargs)
        except openai.OpenAIError as e:
            status_code = getattr(e, "status_code", None)
            logger.error(f"OpenAI API error generating embedding (status={status_code}): {e}")
            raise EmbeddingServiceError(str(e), status_code=status_code) from e

        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise EmbeddingServiceError(
                f"Embedding service returned {len(data)} vectors for {len(texts)} inputs"
            )
        return [list(d.embedding) for d in data]


def make_embedder(cfg: Dict) -> Embedder:
    """Create embedder from config.

    Args:
        cfg: Configuration dictionary

    Returns:
        Embedder instance

    Raises:
        ConfigError: If the backend is unknown
    """
    emb_cfg = cfg.get("embedding", {})
    backend = str(emb_cfg.get("backend", "openai")).strip().lower()
    if backend != "openai":
        raise ConfigError(f"Unsupported embedding.backend: {backend!r}")

    return OpenAIEmbedder(
        model=emb_cfg.get("model", "text-embedding-3-small"),
        api_key=emb_cfg.get("api_key"),
        dimensions=emb_cfg.get("dimensions"),
    )
