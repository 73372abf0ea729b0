"""Embedding job routes with SSE progress."""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse
from starlette.concurrency import run_in_threadpool

from ...core.models import TERMINAL_STATUSES
from ...indexing import JobRunner
from ...utils.git_utils import looks_like_repository_url, sanitise_url
from ..dependencies import get_ledger, get_runner
from ..ledger import JobLedger
from ..schemas import EmbedRequest, EmbedResponse, JobResponse, JobStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/embed")


@router.post("", response_model=EmbedResponse, status_code=202)
def start_embedding(
    request: EmbedRequest,
    ledger: JobLedger = Depends(get_ledger),
    runner: JobRunner = Depends(get_runner),
):
    """Accept a repository for embedding and run it in the background."""
    if not looks_like_repository_url(request.repo_url):
        logger.warning(f"Invalid repository URL format: {sanitise_url(request.repo_url)}")
        raise HTTPException(status_code=400, detail="Invalid repository URL format")

    if not ledger.user_exists(request.tenant_id):
        logger.warning(f"User not found: {request.tenant_id}")
        raise HTTPException(status_code=404, detail="User not found")

    job = ledger.create(request.tenant_id, request.repo_url, request.revision)
    runner.submit(job.job_id, request.repo_url, request.tenant_id, request.revision)

    return EmbedResponse(
        success=True,
        job_id=job.job_id,
        message="Embedding job started successfully",
    )


@router.get("/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, ledger: JobLedger = Depends(get_ledger)):
    job = ledger.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(job=JobResponse.model_validate(job))


@router.get("/{job_id}/progress")
async def job_progress(job_id: str, ledger: JobLedger = Depends(get_ledger)):
    """SSE endpoint for real-time job progress."""
    job = await run_in_threadpool(ledger.get, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    async def event_generator():
        while True:
            current = await run_in_threadpool(ledger.get, job_id)
            if current is None:
                logger.warning(f"Job {job_id} disappeared while streaming progress")
                break
            payload = JobResponse.model_validate(current).model_dump(mode="json")
            yield {"event": "progress", "data": json.dumps(payload)}

            if current.status in TERMINAL_STATUSES:
                break

            await asyncio.sleep(1)

    return EventSourceResponse(event_generator())
