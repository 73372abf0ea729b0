"""Tenant-scoped search routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ...storage import QdrantVectorStore, namespace_for
from ..auth import get_current_tenant
from ..dependencies import get_vector_store
from ..schemas import SearchMatchResponse, SearchRequest, SearchResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query")


@router.post("/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    tenant_id: str = Depends(get_current_tenant),
    store: QdrantVectorStore = Depends(get_vector_store),
):
    namespace = namespace_for(tenant_id)
    logger.debug(f"Search in namespace {namespace}: top_k={request.top_k} filter={request.filter}")

    try:
        matches = store.search(
            tenant_id,
            request.query,
            top_k=request.top_k,
            include_metadata=request.include_metadata,
            include_values=request.include_values,
            filter=request.filter,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing search request for {namespace}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error during search")

    return SearchResponse(
        namespace=namespace,
        matches=[
            SearchMatchResponse(id=m.id, score=m.score, metadata=m.metadata, values=m.values)
            for m in matches
        ],
    )


@router.delete("/namespace")
def delete_namespace(
    tenant_id: str = Depends(get_current_tenant),
    store: QdrantVectorStore = Depends(get_vector_store),
):
    """Remove every vector stored for the calling tenant."""
    namespace = namespace_for(tenant_id)
    try:
        store.delete_all_for_tenant(tenant_id)
    except Exception as e:
        logger.error(f"Error deleting namespace {namespace}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while deleting vectors")
    return {"success": True, "namespace": namespace}
