"""Background execution of embedding jobs."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from ..core.models import FAILED
from .pipeline import EmbeddingPipeline

logger = logging.getLogger(__name__)


def run_embedding_job(
    pipeline: EmbeddingPipeline,
    job_id: str,
    repo_url: str,
    tenant_id: str,
    revision: Optional[str] = None,
) -> str:
    """Run one job to completion. Never raises.

    The pipeline records its own outcome; this only covers the case where
    recording itself blew up.
    """
    try:
        return pipeline.run(job_id, repo_url, tenant_id, revision)
    except Exception as e:
        logger.exception(f"Unhandled error in embedding job {job_id}")
        try:
            pipeline.ledger.update_status(job_id, FAILED, 0, str(e) or type(e).__name__)
        except Exception:
            logger.exception(f"Could not mark job {job_id} as failed")
        return FAILED


class JobRunner:
    """Runs at most ``max_workers`` embedding jobs at a time."""

    def __init__(self, pipeline: EmbeddingPipeline, max_workers: int = 2):
        self.pipeline = pipeline
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="embed-job")

    def submit(
        self,
        job_id: str,
        repo_url: str,
        tenant_id: str,
        revision: Optional[str] = None,
    ) -> Future:
        logger.info(f"Scheduling embedding job {job_id}")
        return self._executor.submit(
            run_embedding_job, self.pipeline, job_id, repo_url, tenant_id, revision
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
