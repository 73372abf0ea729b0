"""Main FastAPI application."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from ..config import cfg_fingerprint, validate_config
from ..utils.file_utils import ensure_dir
from ..utils.log_utils import setup_logging
from .dependencies import get_config, get_runner, get_vector_store
from .routes import embed, health, query

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg = get_config()
    setup_logging(cfg["log_level"])
    validate_config(cfg)

    temp_dir = Path(cfg["temp_dir"])
    ensure_dir(temp_dir)
    logger.info(f"Using work directory {temp_dir.resolve()} (config {cfg_fingerprint(cfg)[:12]})")

    try:
        await asyncio.to_thread(get_vector_store().init)
    except Exception as e:
        # Operations retry initialization lazily
        logger.error(f"Vector store not ready at startup: {e}")

    logger.info("Embedding Builder started")
    yield

    logger.info("Shutting down application...")
    if get_runner.cache_info().currsize:
        get_runner().shutdown(wait=False)
    logger.info("Application shutdown complete")


app = FastAPI(title="Embedding Builder", lifespan=lifespan)

# Setup CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")

api_router.include_router(embed.router)
api_router.include_router(query.router)
api_router.include_router(health.router)

app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "name": "embedding-builder",
        "description": "Service for embedding repository code into vector stores",
        "docs": "/docs",
    }
