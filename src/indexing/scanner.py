"""Reconciliation scan: queue every eligible transcript that has no index yet."""

from __future__ import annotations

import logging

from supabase import Client

from src.indexing.models import ScanStats
from src.indexing.queue import enqueue_many, list_active_source_ids
from src.ingestion.storage import list_indexed_source_ids, list_transcript_ids, list_user_ids
from src.pipeline_config import SourceType

logger = logging.getLogger(__name__)


def find_unindexed_transcripts(client: Client, user_id: str) -> list[str]:
    """Eligible transcripts of *user_id* that are neither indexed nor already queued."""
    eligible = list_transcript_ids(client, user_id, eligible_only=True)
    if not eligible:
        return []

    indexed = list_indexed_source_ids(client, user_id, SourceType.TRANSCRIPT)
    queued = list_active_source_ids(client, user_id, SourceType.TRANSCRIPT)
    return [tid for tid in eligible if tid not in indexed and tid not in queued]


def scan_user(client: Client, user_id: str) -> int:
    """Queue the unindexed transcripts of one user; returns how many rows were inserted."""
    to_queue = find_unindexed_transcripts(client, user_id)
    if not to_queue:
        return 0
    queued = enqueue_many(client, user_id, to_queue, SourceType.TRANSCRIPT)
    logger.info("Queued %d of %d unindexed transcripts for user %s", queued, len(to_queue), user_id)
    return queued


def scan_all_users(client: Client) -> ScanStats:
    """Run :func:`scan_user` for every known user.

    A failure on one user is logged and recorded; failing to list the users
    at all propagates.
    """
    stats = ScanStats()
    user_ids = list_user_ids(client)
    logger.info("Checking %d users for unindexed transcripts", len(user_ids))

    for user_id in user_ids:
        stats.users_checked += 1
        try:
            queued = scan_user(client, user_id)
        except Exception as exc:
            logger.exception("Scan failed for user %s", user_id)
            stats.errors.append(f"User {user_id}: {exc}")
            continue
        if queued:
            stats.users_with_new_items += 1
            stats.items_queued += queued

    return stats
