"""Exception hierarchy for embedding-builder."""

from __future__ import annotations

from typing import Optional


class EmbeddingBuilderError(Exception):
    """Base class for all errors raised by embedding-builder."""


class ConfigError(EmbeddingBuilderError):
    """Configuration is missing or invalid."""


class ChunkingIOError(EmbeddingBuilderError):
    """A single file could not be read as text. Never fatal to a job."""


class EmbeddingServiceError(EmbeddingBuilderError):
    """The remote embedding service rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VectorUpsertError(EmbeddingBuilderError):
    """Writing vectors to the vector store failed."""


class IndexProvisioningError(EmbeddingBuilderError):
    """The vector index did not become ready in time."""


class IndexConfigMismatchError(EmbeddingBuilderError):
    """An existing vector index does not match the configured layout."""


class WorkingCopyError(EmbeddingBuilderError):
    """Cloning or checking out a repository failed."""


class CleanupError(EmbeddingBuilderError):
    """Removing a working directory failed. Logged, never propagated."""
