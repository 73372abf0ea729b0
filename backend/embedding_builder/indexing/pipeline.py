"""Repository embedding pipeline."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from ..core.chunking import DEFAULT_CHUNK_SIZE, walk_and_chunk
from ..core.embeddings import Embedder
from ..core.models import FAILED, RUNNING, SUCCEEDED, Chunk, VectorRecord
from ..storage.base import VectorStore
from ..utils.git_utils import WorkingCopyManager, sanitise_url

logger = logging.getLogger(__name__)

FINAL_PROGRESS = 100


def chunk_to_vector(
    chunk: Chunk,
    values: List[float],
    repo_url: str,
    tenant_id: str,
    revision: Optional[str] = None,
    include_content: bool = True,
) -> VectorRecord:
    """Build the vector record persisted for one chunk."""
    metadata = {
        "tenant_id": tenant_id,
        "repo_url": repo_url,
        "file_path": chunk.file_path,
        "chunk_index": chunk.chunk_index,
        "revision": revision or "",
        "start_line": chunk.start_line,
        "end_line": chunk.end_line,
    }
    if include_content:
        metadata["content"] = chunk.content
    return VectorRecord(id=str(uuid.uuid4()), values=values, metadata=metadata)


class EmbeddingPipeline:
    """Runs one embedding job from clone to upsert.

    Progress reported to the ledger is monotone: 0 when started,
    ``initial_progress`` once the repository is cloned, ``chunking_progress``
    once chunks exist, then linear up to ``embedding_progress`` as embedding
    batches complete, and 100 when the vectors are stored.
    """

    def __init__(
        self,
        ledger,
        embedder: Embedder,
        store: VectorStore,
        workspace: WorkingCopyManager,
        batch_size: int = 50,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        initial_progress: int = 10,
        chunking_progress: int = 30,
        embedding_progress: int = 90,
        include_content: bool = True,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.ledger = ledger
        self.embedder = embedder
        self.store = store
        self.workspace = workspace
        self.batch_size = batch_size
        self.chunk_size = chunk_size
        self.initial_progress = initial_progress
        self.chunking_progress = chunking_progress
        self.embedding_progress = embedding_progress
        self.include_content = include_content

    def run(
        self,
        job_id: str,
        repo_url: str,
        tenant_id: str,
        revision: Optional[str] = None,
    ) -> str:
        """Execute the job and return its terminal status.

        Stage failures are recorded on the job, never raised.
        """
        safe_url = sanitise_url(repo_url)
        work_dir: Optional[Path] = None
        stage = "start"

        try:
            self.ledger.update_status(job_id, RUNNING, 0)
            logger.info(f"Starting embedding job {job_id} for {safe_url}")

            stage = "clone"
            work_dir = self.workspace.acquire(repo_url, job_id, revision)
            self.ledger.update_status(job_id, RUNNING, self.initial_progress)

            stage = "chunking"
            logger.info(f"Job {job_id}: processing files in {work_dir}")
            chunks = walk_and_chunk(work_dir, self.chunk_size)
            if not chunks:
                logger.warning(f"Job {job_id}: no code chunks found in {safe_url}")
                self.ledger.update_status(job_id, SUCCEEDED, FINAL_PROGRESS)
                return SUCCEEDED

            logger.info(f"Job {job_id}: generated {len(chunks)} chunks")
            self.ledger.update_status(job_id, RUNNING, self.chunking_progress)

            stage = "embedding"
            vectors = self._embed_in_batches(job_id, chunks, repo_url, tenant_id, revision)

            stage = "upsert"
            logger.info(f"Job {job_id}: upserting {len(vectors)} vectors")
            self.store.upsert(vectors)

            self.ledger.update_status(job_id, SUCCEEDED, FINAL_PROGRESS)
            logger.info(f"Embedding job {job_id} completed successfully")
            return SUCCEEDED

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(
                f"Embedding job {job_id} failed during {stage} "
                f"(repo={safe_url}, work_dir={work_dir}): {message}",
                exc_info=True,
            )
            self.ledger.update_status(job_id, FAILED, 0, message)
            return FAILED

        finally:
            if work_dir is not None:
                self.workspace.release(work_dir)

    def _embed_in_batches(
        self,
        job_id: str,
        chunks: List[Chunk],
        repo_url: str,
        tenant_id: str,
        revision: Optional[str],
    ) -> List[VectorRecord]:
        vectors: List[VectorRecord] = []
        total = len(chunks)

        for start in range(0, total, self.batch_size):
            batch = chunks[start:start + self.batch_size]
            # Leaving the executor waits for every call in the batch
            with ThreadPoolExecutor(max_workers=len(batch)) as pool:
                futures = [pool.submit(self.embedder.embed_one, c.content) for c in batch]
            for chunk, future in zip(batch, futures):
                try:
                    values = future.result()
                except Exception:
                    logger.error(
                        f"Job {job_id}: failed to generate embedding for "
                        f"{chunk.file_path} chunk {chunk.chunk_index}"
                    )
                    raise
                vectors.append(
                    chunk_to_vector(chunk, values, repo_url, tenant_id, revision, self.include_content)
                )

            processed = start + len(batch)
            self.ledger.update_status(job_id, RUNNING, self._batch_progress(processed, total))

        return vectors

    def _batch_progress(self, processed: int, total: int) -> int:
        span = self.embedding_progress - self.chunking_progress
        return self.chunking_progress + (span * processed) // total


def make_pipeline(cfg: Dict, ledger, embedder: Embedder, store: VectorStore) -> EmbeddingPipeline:
    """Create a pipeline from the ``pipeline`` and ``chunking`` config sections."""
    pipe_cfg = cfg.get("pipeline", {})
    return EmbeddingPipeline(
        ledger=ledger,
        embedder=embedder,
        store=store,
        workspace=WorkingCopyManager(cfg.get("temp_dir", "./work")),
        batch_size=pipe_cfg.get("batch_size", 50),
        chunk_size=cfg.get("chunking", {}).get("chunk_size", DEFAULT_CHUNK_SIZE),
        initial_progress=pipe_cfg.get("initial_progress", 10),
        chunking_progress=pipe_cfg.get("chunking_progress", 30),
        embedding_progress=pipe_cfg.get("embedding_progress", 90),
        include_content=pipe_cfg.get("include_content", True),
    )
