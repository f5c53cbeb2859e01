"""Data models for the embedding queue and its runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.pipeline_config import QueueStatus, SourceType


@dataclass
class QueueItem:
    """One row of ``embedding_queue``."""

    id: int | str
    source_type: SourceType
    source_id: str
    user_id: str
    status: QueueStatus = QueueStatus.PENDING
    attempts: int = 0
    error_message: str | None = None
    created_at: str | None = None
    claimed_at: str | None = None
    processed_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> QueueItem:
        return cls(
            id=row["id"],
            source_type=SourceType(row["source_type"]),
            source_id=str(row["source_id"]),
            user_id=str(row["user_id"]),
            status=QueueStatus(row.get("status") or QueueStatus.PENDING),
            attempts=int(row.get("attempts") or 0),
            error_message=row.get("error_message"),
            created_at=row.get("created_at"),
            claimed_at=row.get("claimed_at"),
            processed_at=row.get("processed_at"),
        )


@dataclass
class ScanStats:
    users_checked: int = 0
    users_with_new_items: int = 0
    items_queued: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class QueueRunResult:
    processed: int = 0
    failed: int = 0
    total: int = 0
    reclaimed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class BulkIngestResult:
    processed: int = 0
    errors: int = 0


@dataclass
class CronRunResult:
    users_checked: int = 0
    new_items_queued: int = 0
    queue_processed: int = 0
    queue_failed: int = 0
    queue_reclaimed: int = 0
    queue_cleaned: int = 0
    errors: list[str] = field(default_factory=list)
