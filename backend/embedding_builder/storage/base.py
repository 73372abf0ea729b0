"""Abstract vector storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.models import SearchMatch, VectorRecord

MAX_TOP_K = 10_000


def namespace_for(tenant_id: str) -> str:
    """Name of the namespace holding *tenant_id*'s vectors."""
    return f"user_{tenant_id}"


class VectorStore(ABC):
    """Abstract base class for vector storage backends.

    Every read and write is scoped to one tenant namespace.
    """

    @abstractmethod
    def init(self) -> None:
        """Provision or connect to the index. Safe to call repeatedly."""
        pass

    @abstractmethod
    def upsert(self, vectors: List[VectorRecord]) -> None:
        """Write vectors, each into its own tenant's namespace."""
        pass

    @abstractmethod
    def search(
        self,
        tenant_id: str,
        query_text: str,
        top_k: int = 10,
        include_metadata: bool = True,
        include_values: bool = False,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchMatch]:
        """Search the tenant's namespace for text similar to *query_text*."""
        pass

    @abstractmethod
    def delete_all_for_tenant(self, tenant_id: str) -> None:
        """Irreversibly empty the tenant's namespace."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Return True if the index is reachable. Never raises."""
        pass
