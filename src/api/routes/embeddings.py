"""Workspace embedding endpoints: ingest, init, status and search."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from src.api.auth import CallerDep
from src.api.errors import elapsed_ms, failure_response
from src.api.models import (
    Capabilities,
    IngestAction,
    IngestRequest,
    IngestResponse,
    InitResponse,
    InitStats,
    SearchFormat,
    SearchRequest,
    SearchResponse,
    SearchResultModel,
    StatusResponse,
    StatusStats,
)
from src.config import settings
from src.indexing.queue import count_by_status
from src.indexing.scanner import scan_all_users
from src.indexing.worker import ingest_all_user_transcripts, ingest_company, ingest_transcript
from src.ingestion.storage import (
    SourceNotFoundError,
    count_transcripts,
    get_supabase_client,
    list_indexed_source_ids,
)
from src.pipeline_config import QueueStatus, SourceType
from src.retrieval.search import SearchValidationError, get_relevant_context, semantic_search

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/embeddings")


@router.post("/ingest", response_model=IngestResponse, response_model_exclude_none=True)
async def ingest(request: IngestRequest, caller: CallerDep) -> IngestResponse:
    """Index one transcript, one company, or every transcript of a user right away."""
    if request.action is IngestAction.TRANSCRIPT and request.transcript_id is None:
        raise HTTPException(status_code=400, detail="transcriptId is required for transcript action")
    if request.action is IngestAction.COMPANY and not request.company_id:
        raise HTTPException(status_code=400, detail="companyId is required for company action")

    try:
        client = get_supabase_client()
        if request.action is IngestAction.TRANSCRIPT:
            chunks = await asyncio.to_thread(ingest_transcript, client, str(request.transcript_id))
            return IngestResponse(
                success=True,
                message=f"Transcript {request.transcript_id} ingested successfully",
                chunks=chunks,
            )

        if request.action is IngestAction.COMPANY:
            chunks = await asyncio.to_thread(
                ingest_company, client, request.company_id, request.user_id
            )
            return IngestResponse(
                success=True,
                message=f"Company {request.company_id} ingested successfully",
                chunks=chunks,
            )

        result = await asyncio.to_thread(ingest_all_user_transcripts, client, request.user_id)
        return IngestResponse(
            success=True,
            message="Bulk ingestion complete",
            processed=result.processed,
            errors=result.errors,
        )
    except SourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Ingest %s failed for user %s", request.action.value, request.user_id)
        raise HTTPException(status_code=500, detail="Failed to ingest content") from exc


@router.post("/init", response_model=InitResponse)
async def init(caller: CallerDep) -> InitResponse | JSONResponse:
    """Queue every eligible transcript of every user that is not indexed yet."""
    started = time.monotonic()
    try:
        stats = await asyncio.to_thread(scan_all_users, get_supabase_client())
    except Exception:
        logger.exception("Initialization failed after %dms", elapsed_ms(started))
        return failure_response("Initialization failed", started)

    return InitResponse(
        success=True,
        message=(
            f"Initialization complete. Queued {stats.items_queued} transcripts "
            f"for {stats.users_with_new_items} users."
        ),
        duration_ms=elapsed_ms(started),
        stats=InitStats(
            users_checked=stats.users_checked,
            users_with_new_items=stats.users_with_new_items,
            items_queued=stats.items_queued,
        ),
        errors=stats.errors,
    )


def _workspace_status(user_id: str) -> StatusResponse:
    client = get_supabase_client()
    total = count_transcripts(client, user_id)
    indexed = len(list_indexed_source_ids(client, user_id, SourceType.TRANSCRIPT))
    pending = count_by_status(client, user_id, QueueStatus.PENDING)
    failed = count_by_status(client, user_id, QueueStatus.FAILED)

    return StatusResponse(
        success=True,
        user_id=user_id,
        stats=StatusStats(
            total_transcripts=total,
            indexed_transcripts=indexed,
            pending_in_queue=pending,
            failed_in_queue=failed,
            indexing_progress=round(indexed / total * 100) if total else 100,
            is_fully_indexed=indexed >= total,
        ),
        capabilities=Capabilities(
            semantic_search_enabled=indexed > 0,
            workspace_mode_ready=indexed >= settings.workspace_ready_threshold,
        ),
    )


@router.get("/status", response_model=StatusResponse)
async def status(
    caller: CallerDep,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
) -> StatusResponse:
    """Indexing progress and search readiness for one user's workspace."""
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    try:
        return await asyncio.to_thread(_workspace_status, user_id)
    except Exception as exc:
        logger.exception("Failed to get embedding status for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to get status") from exc


@router.post("/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search(request: SearchRequest, caller: CallerDep) -> SearchResponse:
    """Semantic search across a user's workspace, as ranked rows or a context block."""
    try:
        if request.format is SearchFormat.CONTEXT:
            context = await asyncio.to_thread(
                get_relevant_context,
                request.user_id,
                request.query,
                request.limit,
                request.min_similarity,
                request.source_types,
            )
            return SearchResponse(success=True, context=context)

        results = await asyncio.to_thread(
            semantic_search,
            request.user_id,
            request.query,
            request.limit,
            request.source_types,
            request.min_similarity,
        )
    except SearchValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Search failed for user %s", request.user_id)
        raise HTTPException(status_code=500, detail="Search failed") from exc

    return SearchResponse(
        success=True,
        results=[
            SearchResultModel(
                id=r.id,
                source_type=r.source_type,
                source_id=r.source_id,
                content=r.content,
                similarity=r.similarity,
                metadata=r.metadata,
            )
            for r in results
        ],
        count=len(results),
    )
