"""Health probe."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...storage import QdrantVectorStore
from ..dependencies import get_ledger, get_vector_store
from ..ledger import JobLedger

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(
    ledger: JobLedger = Depends(get_ledger),
    store: QdrantVectorStore = Depends(get_vector_store),
):
    database_ok = ledger.ping()
    vector_store_ok = store.health_check()

    health = {
        "status": "ok" if database_ok and vector_store_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": {"connected": database_ok},
            "vector_store": {"connected": vector_store_ok},
        },
    }
    if health["status"] != "ok":
        logger.warning(f"Health check failed: {health['services']}")
        return JSONResponse(status_code=503, content=health)
    return health
