"""Scheduler-only endpoints: drain the embedding queue and run the periodic job."""

from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.api.auth import SchedulerDep
from src.api.errors import elapsed_ms, failure_response
from src.api.models import CronResponse, CronResults, ProcessQueueRequest, ProcessQueueResponse
from src.indexing.worker import process_queue, run_cron
from src.ingestion.storage import get_supabase_client

logger = logging.getLogger(__name__)

router = APIRouter()


async def _process(batch_size: int | None) -> ProcessQueueResponse | JSONResponse:
    started = time.monotonic()
    try:
        run = await asyncio.to_thread(process_queue, get_supabase_client(), batch_size)
    except Exception:
        logger.exception("Failed to process queue")
        return failure_response("Failed to process queue", started)

    if not run.total:
        message = "No pending items in queue"
    else:
        message = f"Processed {run.processed} items, {run.failed} failed"
    return ProcessQueueResponse(
        success=True,
        message=message,
        processed=run.processed,
        failed=run.failed,
        total=run.total,
        reclaimed=run.reclaimed,
    )


@router.post("/api/embeddings/process-queue", response_model=ProcessQueueResponse)
async def process_queue_post(
    caller: SchedulerDep,
    request: ProcessQueueRequest | None = None,
) -> ProcessQueueResponse | JSONResponse:
    """Process one batch of pending queue items."""
    return await _process(request.batch_size if request else None)


@router.get("/api/embeddings/process-queue", response_model=ProcessQueueResponse)
async def process_queue_get(caller: SchedulerDep) -> ProcessQueueResponse | JSONResponse:
    """GET variant for schedulers that can only issue GET requests."""
    return await _process(None)


@router.get("/api/cron/embeddings", response_model=CronResponse)
async def cron_embeddings(caller: SchedulerDep) -> CronResponse | JSONResponse:
    """Scan for unindexed transcripts, process a batch and sweep old queue rows."""
    started = time.monotonic()
    try:
        results = await asyncio.to_thread(run_cron, get_supabase_client())
    except Exception:
        logger.exception("Embeddings cron failed")
        return failure_response("Embeddings cron failed", started)

    duration_ms = elapsed_ms(started)
    logger.info("Embeddings cron completed in %dms", duration_ms)
    return CronResponse(
        success=True,
        duration_ms=duration_ms,
        results=CronResults(
            users_checked=results.users_checked,
            new_items_queued=results.new_items_queued,
            queue_processed=results.queue_processed,
            queue_failed=results.queue_failed,
            queue_reclaimed=results.queue_reclaimed,
            queue_cleaned=results.queue_cleaned,
            errors=results.errors,
        ),
    )
