"""Data models for embedding-builder."""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, List, Optional

# Job statuses
QUEUED = "queued"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"

JOB_STATUSES = (QUEUED, RUNNING, SUCCEEDED, FAILED)
TERMINAL_STATUSES = frozenset({SUCCEEDED, FAILED})


@dataclasses.dataclass
class Chunk:
    """A contiguous slice of one file's lines."""

    file_path: str
    chunk_index: int
    start_line: int
    end_line: int
    content: str


@dataclasses.dataclass
class VectorRecord:
    """One embedded chunk, as written to the vector store."""

    id: str
    values: List[float]
    metadata: Dict[str, Any]

    @property
    def tenant_id(self) -> Optional[str]:
        return self.metadata.get("tenant_id")


@dataclasses.dataclass
class SearchMatch:
    """A single hit from a tenant-scoped similarity query."""

    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None
    values: Optional[List[float]] = None
