"""Pipeline configuration: shared enums and the PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from src.config import Settings, settings


class SourceType(str, Enum):
    """Kinds of workspace documents that can be indexed."""

    TRANSCRIPT = "transcript"
    COMPANY = "company"


class QueueStatus(str, Enum):
    """Lifecycle states of an embedding queue item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = (QueueStatus.PENDING, QueueStatus.PROCESSING)
TERMINAL_STATUSES = (QueueStatus.COMPLETED, QueueStatus.FAILED)


class IdentificationMethod(str, Enum):
    """How the rep speaker was picked out of a transcript."""

    NAME_MATCH = "name_match"
    COMPANY_MATCH = "company_match"
    FIRST_SPEAKER = "first_speaker"


class IdentificationConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TalkRatioMethod(str, Enum):
    TIME_BASED = "time_based"
    WORD_BASED = "word_based"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable tuning knobs for chunking and queue processing.

    Defaults mirror the production values; :meth:`from_settings` reads the
    environment-backed overrides.
    """

    max_chunk_size: int = 8000
    chunk_overlap: int = 200
    retry_limit: int = 3
    batch_size: int = 10
    cron_batch_size: int = 20
    retention_days: int = 7
    stale_after_minutes: int = 10

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> PipelineConfig:
        s = source or settings
        return cls(
            max_chunk_size=s.max_chunk_size,
            chunk_overlap=s.chunk_overlap,
            retry_limit=s.retry_limit,
            batch_size=s.queue_batch_size,
            cron_batch_size=s.cron_batch_size,
            retention_days=s.queue_retention_days,
            stale_after_minutes=s.stale_processing_minutes,
        )

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)

    @property
    def stale_after(self) -> timedelta:
        return timedelta(minutes=self.stale_after_minutes)
