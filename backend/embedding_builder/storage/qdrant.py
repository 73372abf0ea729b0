"""Qdrant vector database backend."""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    CollectionStatus,
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    KeywordIndexParams,
    KeywordIndexType,
    MatchAny,
    MatchValue,
    PointStruct,
    VectorParams,
)

from ..core.embeddings import Embedder
from ..core.errors import (
    IndexConfigMismatchError,
    IndexProvisioningError,
    VectorUpsertError,
)
from ..core.models import SearchMatch, VectorRecord
from .base import MAX_TOP_K, VectorStore, namespace_for

logger = logging.getLogger(__name__)

NAMESPACE_FIELD = "namespace"

METRICS = {
    "cosine": Distance.COSINE,
    "dot": Distance.DOT,
    "euclid": Distance.EUCLID,
    "manhattan": Distance.MANHATTAN,
}

_FILTER_KEYS = {"must", "should", "must_not", "min_should"}


class IndexState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"


def group_by_tenant(vectors: List[VectorRecord]) -> Dict[str, List[VectorRecord]]:
    """Group vectors by tenant id, keeping first-seen tenant order."""
    groups: Dict[str, List[VectorRecord]] = {}
    for v in vectors:
        groups.setdefault(v.tenant_id, []).append(v)
    return groups


def namespace_filter(namespace: str, extra: Optional[Any] = None) -> Filter:
    """Filter restricting a query to *namespace*, AND-ed with *extra*.

    *extra* may be a ``Filter``, a Qdrant filter document (``must``/``should``/
    ``must_not`` keys) or a plain ``{field: value}`` mapping.
    """
    must: List[Any] = [FieldCondition(key=NAMESPACE_FIELD, match=MatchValue(value=namespace))]
    if not extra:
        return Filter(must=must)

    if isinstance(extra, Filter):
        must.append(extra)
    elif set(extra) & _FILTER_KEYS:
        must.append(Filter(**extra))
    else:
        for key, value in extra.items():
            if isinstance(value, (list, tuple)):
                must.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
            else:
                must.append(FieldCondition(key=key, match=MatchValue(value=value)))
    return Filter(must=must)


class QdrantVectorStore(VectorStore):
    """One Qdrant collection, partitioned into per-tenant namespaces.

    The collection is created on first use and the adapter waits until Qdrant
    reports it green. Initialization is lazy, thread-safe and idempotent; a
    failed attempt is retried by the next operation.
    """

    def __init__(
        self,
        client: QdrantClient,
        collection_name: str,
        dimension: int = 1536,
        metric: str = "cosine",
        embedder: Optional[Embedder] = None,
        batch_size: int = 40,
        poll_interval: float = 5.0,
        max_poll_attempts: int = 12,
    ):
        if metric not in METRICS:
            raise ValueError(f"Unknown metric {metric!r}, expected one of {sorted(METRICS)}")
        self.client = client
        self.collection_name = collection_name
        self.dimension = dimension
        self.metric = metric
        self.embedder = embedder
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

        self.state = IndexState.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self.state is IndexState.READY

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def init(self) -> None:
        if self.is_ready:
            return
        with self._lock:
            if self.is_ready:
                return
            self.state = IndexState.PROVISIONING
            try:
                existing = [c.name for c in self.client.get_collections().collections]
                if self.collection_name not in existing:
                    self._create_collection()
                    self._wait_until_ready()
                else:
                    logger.info(f"Connecting to existing collection '{self.collection_name}'")
                    self._validate_existing()
            except Exception as e:
                self.state = IndexState.FAILED
                logger.error(
                    f"Failed to initialize vector store collection '{self.collection_name}': {e}"
                )
                raise
            self.state = IndexState.READY
            logger.info(f"Vector store ready on collection '{self.collection_name}'")

    def _create_collection(self) -> None:
        logger.info(
            f"Collection '{self.collection_name}' not found, creating it "
            f"(dimension={self.dimension}, metric={self.metric})"
        )
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.dimension, distance=METRICS[self.metric]),
        )
        self._ensure_namespace_index()

    def _ensure_namespace_index(self) -> None:
        # Idempotent on the server side
        self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name=NAMESPACE_FIELD,
            field_schema=KeywordIndexParams(type=KeywordIndexType.KEYWORD, is_tenant=True),
        )

    def _wait_until_ready(self) -> None:
        status = None
        for attempt in range(1, self.max_poll_attempts + 1):
            try:
                status = self.client.get_collection(collection_name=self.collection_name).status
                if status == CollectionStatus.GREEN:
                    logger.info(f"Collection '{self.collection_name}' created and ready")
                    return
            except UnexpectedResponse as e:
                # 404 while the collection is still being provisioned
                if e.status_code != 404:
                    logger.warning(
                        f"Error describing collection '{self.collection_name}' while waiting, retrying: {e}"
                    )
            except Exception as e:
                logger.warning(
                    f"Error describing collection '{self.collection_name}' while waiting, retrying: {e}"
                )
            logger.info(
                f"Waiting for collection '{self.collection_name}' to become ready "
                f"(attempt {attempt}/{self.max_poll_attempts}, status={status})"
            )
            time.sleep(self.poll_interval)

        raise IndexProvisioningError(
            f"Collection '{self.collection_name}' did not become ready after "
            f"{self.max_poll_attempts} attempts"
        )

    def _validate_existing(self) -> None:
        info = self.client.get_collection(collection_name=self.collection_name)
        params = info.config.params.vectors
        if not isinstance(params, VectorParams):
            raise IndexConfigMismatchError(
                f"Collection '{self.collection_name}' uses named vectors, expected a single vector"
            )
        if params.size != self.dimension:
            raise IndexConfigMismatchError(
                f"Collection '{self.collection_name}' has dimension {params.size}, "
                f"expected {self.dimension}"
            )
        if params.distance != METRICS[self.metric]:
            logger.warning(
                f"Collection '{self.collection_name}' uses metric {params.distance}, "
                f"configured {METRICS[self.metric]}. Ensure this is intended."
            )
        if NAMESPACE_FIELD not in (info.payload_schema or {}):
            logger.info(f"Creating missing '{NAMESPACE_FIELD}' index on '{self.collection_name}'")
            self._ensure_namespace_index()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, vectors: List[VectorRecord]) -> None:
        if not vectors:
            return

        for v in vectors:
            if not v.tenant_id:
                raise VectorUpsertError(f"Vector {v.id} has no tenant_id in its metadata")
            if len(v.values) != self.dimension:
                raise VectorUpsertError(
                    f"Vector {v.id} has dimension {len(v.values)}, expected {self.dimension}"
                )

        self.init()

        for tenant_id, records in group_by_tenant(vectors).items():
            namespace = namespace_for(tenant_id)
            total_batches = (len(records) + self.batch_size - 1) // self.batch_size

            for i in range(0, len(records), self.batch_size):
                batch = records[i:i + self.batch_size]
                batch_num = i // self.batch_size + 1
                points = [
                    PointStruct(
                        id=r.id,
                        vector=r.values,
                        payload={
                            **r.metadata,
                            "revision": r.metadata.get("revision") or "",
                            NAMESPACE_FIELD: namespace,
                        },
                    )
                    for r in batch
                ]
                try:
                    self.client.upsert(
                        collection_name=self.collection_name,
                        points=points,
                        wait=True,
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to upsert batch {batch_num}/{total_batches} "
                        f"to namespace '{namespace}': {e}"
                    )
                    raise VectorUpsertError(
                        f"Failed to upsert batch {batch_num}/{total_batches} "
                        f"to namespace '{namespace}': {e}"
                    ) from e
                logger.info(
                    f"Upserted batch {batch_num}/{total_batches} "
                    f"({len(batch)} vectors) to namespace '{namespace}'"
                )

    def delete_all_for_tenant(self, tenant_id: str) -> None:
        self.init()
        namespace = namespace_for(tenant_id)
        self.client.delete(
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=namespace_filter(namespace)),
            wait=True,
        )
        logger.info(f"Deleted all vectors in namespace '{namespace}'")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def search(
        self,
        tenant_id: str,
        query_text: str,
        top_k: int = 10,
        include_metadata: bool = True,
        include_values: bool = False,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchMatch]:
        if isinstance(top_k, bool) or not isinstance(top_k, int) or not 1 <= top_k <= MAX_TOP_K:
            raise ValueError(f"top_k must be an integer between 1 and {MAX_TOP_K}")
        if self.embedder is None:
            raise RuntimeError("Text search requires an embedder")

        self.init()
        namespace = namespace_for(tenant_id)
        query_vector = self.embedder.embed_one(query_text)

        try:
            results = self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                limit=top_k,
                query_filter=namespace_filter(namespace, filter),
                with_payload=include_metadata,
                with_vectors=include_values,
            )
        except Exception as e:
            logger.error(f"Error searching namespace '{namespace}': {e}")
            raise

        matches = []
        for point in results.points:
            metadata = None
            if include_metadata:
                metadata = {k: v for k, v in (point.payload or {}).items() if k != NAMESPACE_FIELD}
            values = list(point.vector) if include_values and point.vector is not None else None
            matches.append(SearchMatch(id=str(point.id), score=point.score, metadata=metadata, values=values))
        return matches

    def count(self, tenant_id: str) -> int:
        """Number of vectors stored in the tenant's namespace."""
        self.init()
        result = self.client.count(
            collection_name=self.collection_name,
            count_filter=namespace_filter(namespace_for(tenant_id)),
            exact=True,
        )
        return result.count

    def health_check(self) -> bool:
        try:
            self.init()
            info = self.client.get_collection(collection_name=self.collection_name)
            logger.debug(f"Collection '{self.collection_name}' holds {info.points_count} points")
            return True
        except Exception as e:
            logger.error(f"Vector store health check failed: {e}")
            return False


def make_vector_store(cfg: Dict, embedder: Optional[Embedder] = None) -> QdrantVectorStore:
    """Create the vector store described by *cfg*. No network calls are made."""
    vector_store_cfg = cfg.get("vector_store", {})
    qdrant_cfg = vector_store_cfg.get("qdrant", {})

    if qdrant_cfg.get("location"):
        client = QdrantClient(location=qdrant_cfg["location"])
    elif qdrant_cfg.get("url"):
        client = QdrantClient(url=qdrant_cfg["url"], api_key=qdrant_cfg.get("api_key"))
    else:
        client = QdrantClient(
            host=qdrant_cfg.get("host", "localhost"),
            port=qdrant_cfg.get("port", 6333),
            api_key=qdrant_cfg.get("api_key"),
        )

    return QdrantVectorStore(
        client=client,
        collection_name=vector_store_cfg.get("collection_name", "code-embeddings"),
        dimension=vector_store_cfg.get("dimension", 1536),
        metric=vector_store_cfg.get("metric", "cosine"),
        embedder=embedder,
        batch_size=vector_store_cfg.get("batch_size", 40),
        poll_interval=vector_store_cfg.get("poll_interval", 5.0),
        max_poll_attempts=vector_store_cfg.get("max_poll_attempts", 12),
    )
