"""Embedding queue store backed by the ``embedding_queue`` Supabase table.

Status transitions are ``pending -> processing -> {completed | pending | failed}``.
Every transition is a conditional update on the row's current status, so two
overlapping workers can never both move the same item forward.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from supabase import Client

from src.indexing.models import QueueItem
from src.pipeline_config import ACTIVE_STATUSES, TERMINAL_STATUSES, QueueStatus, SourceType

logger = logging.getLogger(__name__)

QUEUE_TABLE = "embedding_queue"

STALE_CLAIM_ERROR = "Processing timed out"


def utcnow() -> datetime:
    return datetime.now(UTC)


def _iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat()


def _rows(result: Any) -> list[dict[str, Any]]:
    return cast(list[dict[str, Any]], result.data or [])


def enqueue_many(
    client: Client,
    user_id: str,
    source_ids: list[str],
    source_type: SourceType = SourceType.TRANSCRIPT,
) -> int:
    """Queue documents for indexing; existing ``(source_type, source_id)`` rows are left alone.

    Returns:
        The number of rows actually inserted.
    """
    if not source_ids:
        return 0
    rows = [
        {
            "source_type": source_type.value,
            "source_id": str(source_id),
            "user_id": user_id,
            "status": QueueStatus.PENDING.value,
            "attempts": 0,
        }
        for source_id in source_ids
    ]
    result = client.table(QUEUE_TABLE).upsert(
        rows,
        on_conflict="source_type,source_id",
        ignore_duplicates=True,
    ).execute()
    return len(_rows(result))


def enqueue(client: Client, source_type: SourceType, source_id: str, user_id: str) -> bool:
    return enqueue_many(client, user_id, [source_id], source_type) > 0


def list_active_source_ids(
    client: Client,
    user_id: str,
    source_type: SourceType = SourceType.TRANSCRIPT,
) -> set[str]:
    """Source ids of *user_id* that are pending or being processed."""
    result = (
        client.table(QUEUE_TABLE)
        .select("source_id")
        .eq("user_id", user_id)
        .eq("source_type", source_type.value)
        .in_("status", [s.value for s in ACTIVE_STATUSES])
        .execute()
    )
    return {str(r["source_id"]) for r in _rows(result)}


def count_by_status(client: Client, user_id: str, status: QueueStatus) -> int:
    result = (
        client.table(QUEUE_TABLE)
        .select("id", count="exact", head=True)
        .eq("user_id", user_id)
        .eq("status", status.value)
        .execute()
    )
    return result.count or 0


def claim_pending(
    client: Client,
    batch_size: int,
    now: datetime | None = None,
) -> list[QueueItem]:
    """Claim up to *batch_size* pending items, oldest first.

    Each claim is a compare-and-swap: the update only applies while the row is
    still ``pending`` with the attempt count we read, and only rows the update
    returns are treated as claimed. Rows taken by a concurrent worker in the
    meantime are skipped.
    """
    if batch_size <= 0:
        return []

    claimed_at = _iso(now or utcnow())
    candidates = _rows(
        client.table(QUEUE_TABLE)
        .select("*")
        .eq("status", QueueStatus.PENDING.value)
        .order("created_at", desc=False)
        .limit(batch_size)
        .execute()
    )

    claimed: list[QueueItem] = []
    for row in candidates:
        attempts = int(row.get("attempts") or 0)
        result = (
            client.table(QUEUE_TABLE)
            .update(
                {
                    "status": QueueStatus.PROCESSING.value,
                    "attempts": attempts + 1,
                    "claimed_at": claimed_at,
                }
            )
            .eq("id", row["id"])
            .eq("status", QueueStatus.PENDING.value)
            .eq("attempts", attempts)
            .execute()
        )
        updated = _rows(result)
        if updated:
            claimed.append(QueueItem.from_row(updated[0]))
        else:
            logger.info("Queue item %s was claimed by another worker", row["id"])

    return claimed


def _transition(client: Client, item: QueueItem, values: dict[str, Any]) -> bool:
    result = (
        client.table(QUEUE_TABLE)
        .update(values)
        .eq("id", item.id)
        .eq("status", QueueStatus.PROCESSING.value)
        .execute()
    )
    if not _rows(result):
        logger.warning("Queue item %s was no longer processing; update skipped", item.id)
        return False
    return True


def mark_completed(client: Client, item: QueueItem, now: datetime | None = None) -> bool:
    return _transition(
        client,
        item,
        {
            "status": QueueStatus.COMPLETED.value,
            "error_message": None,
            "processed_at": _iso(now or utcnow()),
        },
    )


def mark_attempt_failed(
    client: Client,
    item: QueueItem,
    error_message: str,
    retry_limit: int,
    now: datetime | None = None,
) -> QueueStatus:
    """Send a failed item back to ``pending``, or to ``failed`` once its retries are spent."""
    if item.attempts >= retry_limit:
        values: dict[str, Any] = {
            "status": QueueStatus.FAILED.value,
            "error_message": error_message,
            "processed_at": _iso(now or utcnow()),
        }
        new_status = QueueStatus.FAILED
    else:
        values = {"status": QueueStatus.PENDING.value, "error_message": error_message}
        new_status = QueueStatus.PENDING

    _transition(client, item, values)
    return new_status


def reclaim_stale(
    client: Client,
    stale_after: timedelta,
    retry_limit: int,
    now: datetime | None = None,
) -> int:
    """Release items stuck in ``processing`` for longer than *stale_after*.

    Such items belong to an invocation that was killed mid-flight. They go
    back to ``pending``, or to ``failed`` if they already used every attempt.
    """
    moment = now or utcnow()
    threshold = _iso(moment - stale_after)
    stale = _rows(
        client.table(QUEUE_TABLE)
        .select("*")
        .eq("status", QueueStatus.PROCESSING.value)
        .lt("claimed_at", threshold)
        .execute()
    )

    reclaimed = 0
    for row in stale:
        item = QueueItem.from_row(row)
        if item.attempts >= retry_limit:
            values: dict[str, Any] = {
                "status": QueueStatus.FAILED.value,
                "error_message": STALE_CLAIM_ERROR,
                "processed_at": _iso(moment),
            }
        else:
            values = {"status": QueueStatus.PENDING.value, "error_message": STALE_CLAIM_ERROR}

        result = (
            client.table(QUEUE_TABLE)
            .update(values)
            .eq("id", item.id)
            .eq("status", QueueStatus.PROCESSING.value)
            .eq("claimed_at", item.claimed_at)
            .execute()
        )
        if _rows(result):
            reclaimed += 1
            logger.warning(
                "Reclaimed stale %s %s (attempts=%d) -> %s",
                item.source_type.value,
                item.source_id,
                item.attempts,
                values["status"],
            )

    return reclaimed


def cleanup_terminal(client: Client, retention: timedelta, now: datetime | None = None) -> int:
    """Delete completed/failed items whose ``processed_at`` is older than *retention*."""
    threshold = _iso((now or utcnow()) - retention)
    result = (
        client.table(QUEUE_TABLE)
        .delete()
        .in_("status", [s.value for s in TERMINAL_STATUSES])
        .lt("processed_at", threshold)
        .execute()
    )
    removed = len(_rows(result))
    if removed:
        logger.info("Removed %d finished queue items older than %s", removed, threshold)
    return removed
