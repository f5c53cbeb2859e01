"""Ingestion worker: source -> text -> chunks -> embeddings -> workspace_embeddings."""

from __future__ import annotations

import logging

from supabase import Client

from src.indexing.models import BulkIngestResult, CronRunResult, QueueItem, QueueRunResult
from src.indexing.queue import (
    claim_pending,
    cleanup_terminal,
    mark_attempt_failed,
    mark_completed,
    reclaim_stale,
)
from src.indexing.scanner import scan_all_users
from src.ingestion.chunking import chunk_text
from src.ingestion.content import chunk_metadata, prepare_content
from src.ingestion.embeddings import embed_texts
from src.ingestion.models import RepProfile, TranscriptSource
from src.ingestion.storage import (
    fetch_rep_profile,
    fetch_source,
    list_transcript_ids,
    replace_source_chunks,
)
from src.pipeline_config import PipelineConfig, QueueStatus, SourceType

logger = logging.getLogger(__name__)


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


def ingest_source(
    client: Client,
    source_type: SourceType | str,
    source_id: str,
    user_id: str,
    config: PipelineConfig | None = None,
) -> int:
    """Index one document, replacing whatever chunks it had before.

    Embedding runs before the old chunks are removed, so a provider failure
    leaves the previous index in place.

    Returns:
        The number of chunks stored.
    """
    config = config or PipelineConfig.from_settings()

    source = fetch_source(client, source_type, source_id, user_id)
    rep = RepProfile()
    if isinstance(source, TranscriptSource):
        rep = fetch_rep_profile(client, source.user_id)

    chunks = chunk_text(
        prepare_content(source, rep),
        max_chunk_size=config.max_chunk_size,
        overlap=config.chunk_overlap,
        metadata=chunk_metadata(source),
    )
    embeddings = embed_texts([c.content for c in chunks])
    replace_source_chunks(client, source, list(zip(chunks, embeddings, strict=True)))

    logger.info("Ingested %s %s with %d chunks", source.kind.value, source.id, len(chunks))
    return len(chunks)


def ingest_transcript(client: Client, transcript_id: str, config: PipelineConfig | None = None) -> int:
    # The owner comes from the transcript row itself.
    return ingest_source(client, SourceType.TRANSCRIPT, str(transcript_id), "", config)


def ingest_company(
    client: Client,
    company_id: str,
    user_id: str,
    config: PipelineConfig | None = None,
) -> int:
    return ingest_source(client, SourceType.COMPANY, company_id, user_id, config)


def ingest_all_user_transcripts(
    client: Client,
    user_id: str,
    config: PipelineConfig | None = None,
) -> BulkIngestResult:
    """Synchronously (re)index every transcript a user owns."""
    result = BulkIngestResult()
    for transcript_id in list_transcript_ids(client, user_id, eligible_only=False):
        try:
            ingest_transcript(client, transcript_id, config)
            result.processed += 1
        except Exception:
            logger.exception("Error ingesting transcript %s", transcript_id)
            result.errors += 1

    logger.info(
        "Bulk ingestion for %s complete: %d processed, %d errors",
        user_id,
        result.processed,
        result.errors,
    )
    return result


def process_item(client: Client, item: QueueItem, config: PipelineConfig) -> QueueStatus:
    """Run one claimed item and record the outcome on its queue row.

    Returns the status the row was moved to. ``PROCESSING`` means the row had
    already been taken back (stale reclaim or another worker), so the result
    of this run was not recorded.
    """
    try:
        ingest_source(client, item.source_type, item.source_id, item.user_id, config)
    except Exception as exc:
        logger.exception(
            "Failed %s %s (attempt %d/%d)",
            item.source_type.value,
            item.source_id,
            item.attempts,
            config.retry_limit,
        )
        return mark_attempt_failed(client, item, _describe(exc), config.retry_limit)

    if not mark_completed(client, item):
        return QueueStatus.PROCESSING
    return QueueStatus.COMPLETED


def process_queue(
    client: Client,
    batch_size: int | None = None,
    config: PipelineConfig | None = None,
) -> QueueRunResult:
    """Drain one batch of the embedding queue.

    Stale claims are released first, then up to *batch_size* pending items are
    claimed (oldest first) and processed one after another. A failing item,
    including a failure to update its queue row, never stops the rest of the
    batch; an item only counts as processed once its completion is recorded.
    """
    config = config or PipelineConfig.from_settings()
    size = batch_size if batch_size is not None else config.batch_size

    result = QueueRunResult()
    result.reclaimed = reclaim_stale(client, config.stale_after, config.retry_limit)

    items = claim_pending(client, size)
    result.total = len(items)
    if not items:
        logger.info("No pending items in queue")
        return result

    logger.info("Processing %d queued items", len(items))
    for item in items:
        label = f"{item.source_type.value} {item.source_id}"
        try:
            status = process_item(client, item, config)
        except Exception as exc:
            logger.exception("Could not record the outcome of %s", label)
            result.failed += 1
            result.errors.append(f"{label}: {_describe(exc)}")
            continue

        if status is QueueStatus.COMPLETED:
            result.processed += 1
        elif status is QueueStatus.PROCESSING:
            result.failed += 1
            result.errors.append(f"{label}: completion not recorded")
        else:
            result.failed += 1
            result.errors.append(label)

    logger.info("Processed %d items, %d failed", result.processed, result.failed)
    return result


def cleanup_queue(client: Client, config: PipelineConfig | None = None) -> int:
    config = config or PipelineConfig.from_settings()
    return cleanup_terminal(client, config.retention)


def run_cron(client: Client, config: PipelineConfig | None = None) -> CronRunResult:
    """Periodic job: find unindexed transcripts, drain a batch, sweep old rows."""
    config = config or PipelineConfig.from_settings()
    results = CronRunResult()

    try:
        scan = scan_all_users(client)
    except Exception as exc:
        logger.exception("Error scanning users")
        results.errors.append(f"Failed to scan users: {exc}")
    else:
        results.users_checked = scan.users_checked
        results.new_items_queued = scan.items_queued
        results.errors.extend(scan.errors)

    run = process_queue(client, config.cron_batch_size, config)
    results.queue_processed = run.processed
    results.queue_failed = run.failed
    results.queue_reclaimed = run.reclaimed
    results.errors.extend(run.errors)

    results.queue_cleaned = cleanup_queue(client, config)
    return results
