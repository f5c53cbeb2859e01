"""Pydantic request/response schemas for the workspace embeddings API.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.pipeline_config import SourceType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestAction(str, Enum):
    TRANSCRIPT = "transcript"
    COMPANY = "company"
    BULK_TRANSCRIPTS = "bulk_transcripts"


class SearchFormat(str, Enum):
    RAW = "raw"
    CONTEXT = "context"


class IngestRequest(CamelModel):
    """Request body for /api/embeddings/ingest."""

    action: IngestAction
    user_id: str
    transcript_id: int | str | None = None
    company_id: str | None = None


class IngestResponse(CamelModel):
    success: bool
    message: str
    chunks: int | None = None
    processed: int | None = None
    errors: int | None = None


class InitStats(CamelModel):
    users_checked: int
    users_with_new_items: int
    items_queued: int


class InitResponse(CamelModel):
    success: bool
    message: str
    duration_ms: int
    stats: InitStats
    errors: list[str] = []


class ProcessQueueRequest(CamelModel):
    batch_size: int | None = Field(default=None, gt=0, le=100)


class ProcessQueueResponse(CamelModel):
    success: bool
    message: str
    processed: int
    failed: int
    total: int
    reclaimed: int = 0


class StatusStats(CamelModel):
    total_transcripts: int
    indexed_transcripts: int
    pending_in_queue: int
    failed_in_queue: int
    indexing_progress: int
    is_fully_indexed: bool


class Capabilities(CamelModel):
    semantic_search_enabled: bool
    workspace_mode_ready: bool


class StatusResponse(CamelModel):
    success: bool
    user_id: str
    stats: StatusStats
    capabilities: Capabilities


class SearchRequest(CamelModel):
    """Request body for /api/embeddings/search."""

    query: str
    user_id: str
    limit: int = Field(default=10, gt=0, le=100)
    source_types: list[SourceType] | None = None
    min_similarity: float | None = Field(default=None, ge=-1.0, le=1.0)
    format: SearchFormat = SearchFormat.RAW


class SearchResultModel(CamelModel):
    id: int | str
    source_type: str
    source_id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = {}


class SearchResponse(CamelModel):
    success: bool
    results: list[SearchResultModel] | None = None
    count: int | None = None
    context: str | None = None


class CronResults(CamelModel):
    users_checked: int
    new_items_queued: int
    queue_processed: int
    queue_failed: int
    queue_reclaimed: int
    queue_cleaned: int
    errors: list[str]


class CronResponse(CamelModel):
    success: bool
    duration_ms: int
    results: CronResults
